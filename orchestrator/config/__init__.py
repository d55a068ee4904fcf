"""
Habit Saga Configuration Module
Storage, provider and pipeline settings.
"""

from .settings import (
    DEFAULT_ALLOWED_ORIGINS,
    GeminiConfig,
    NarrativeRetryConfig,
    SagaConfiguration,
    SupabaseConfig,
    create_default_config_from_env,
)

__all__ = [
    "DEFAULT_ALLOWED_ORIGINS",
    "SupabaseConfig",
    "GeminiConfig",
    "NarrativeRetryConfig",
    "SagaConfiguration",
    "create_default_config_from_env",
]
