"""
Habit Saga Orchestrator Configuration
Storage, AI provider and check-in pipeline settings.
"""

import os
from typing import List, Optional

from pydantic import BaseModel, Field, SecretStr


# Origins allowed by default for the mobile web build and local development
DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:8081",
    "http://localhost:19006",
    "http://127.0.0.1:8081",
]


# ============================================================================
# Collaborator Configuration Models
# ============================================================================

class SupabaseConfig(BaseModel):
    """Relational store, object store and auth settings."""
    url: str
    service_role_key: SecretStr
    jwt_secret: Optional[SecretStr] = None
    panels_bucket: str = "panels"


class GeminiConfig(BaseModel):
    """Google Gemini settings for narrative and panel generation."""
    api_key: SecretStr
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    text_model: str = "gemini-2.5-flash"
    image_model: str = "gemini-3-pro-image-preview"
    temperature: float = Field(default=0.8, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=2500, ge=256, le=32768)


class NarrativeRetryConfig(BaseModel):
    """Retry policy for chapter narrative generation."""
    max_attempts: int = Field(default=3, ge=1, le=10)
    backoff_seconds: float = Field(default=1.0, ge=0.0, le=30.0)
    timeout_seconds: float = Field(default=60.0, gt=0.0, le=600.0)


# ============================================================================
# Master Configuration
# ============================================================================

class SagaConfiguration(BaseModel):
    """Master configuration for the check-in orchestrator."""

    supabase: Optional[SupabaseConfig] = None
    gemini: Optional[GeminiConfig] = None
    narrative_retry: NarrativeRetryConfig = Field(default_factory=NarrativeRetryConfig)

    checkin_rate_limit: str = "10/minute"
    allowed_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    # Draft chapter insert attempts when another check-in took the same index
    chapter_index_attempts: int = Field(default=3, ge=1, le=10)

    def validate_settings(self) -> List[str]:
        """Return a list of configuration problems, empty when usable."""
        errors = []
        if not self.supabase:
            errors.append("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        elif not self.supabase.jwt_secret:
            errors.append("SUPABASE_JWT_SECRET is not set - bearer tokens will not be verified")
        if not self.gemini:
            errors.append("GEMINI_API_KEY is not set - narrative and panel generation will use fallbacks")
        return errors

    @property
    def is_storage_configured(self) -> bool:
        return self.supabase is not None


def create_default_config_from_env() -> SagaConfiguration:
    """Create configuration from environment variables."""
    config = SagaConfiguration()

    # Supabase
    supabase_url = os.getenv("SUPABASE_URL")
    service_key = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_SERVICE_KEY")
    if supabase_url and service_key:
        jwt_secret = os.getenv("SUPABASE_JWT_SECRET")
        config.supabase = SupabaseConfig(
            url=supabase_url,
            service_role_key=SecretStr(service_key),
            jwt_secret=SecretStr(jwt_secret) if jwt_secret else None,
            panels_bucket=os.getenv("PANELS_BUCKET", "panels"),
        )

    # Gemini
    if os.getenv("GEMINI_API_KEY"):
        config.gemini = GeminiConfig(
            api_key=SecretStr(os.getenv("GEMINI_API_KEY")),
            text_model=os.getenv("GEMINI_TEXT_MODEL", "gemini-2.5-flash"),
            image_model=os.getenv("GEMINI_IMAGE_MODEL", "gemini-3-pro-image-preview"),
        )

    # Narrative retry policy
    config.narrative_retry = NarrativeRetryConfig(
        max_attempts=int(os.getenv("NARRATIVE_MAX_ATTEMPTS", "3")),
        backoff_seconds=float(os.getenv("NARRATIVE_BACKOFF_SECONDS", "1.0")),
        timeout_seconds=float(os.getenv("NARRATIVE_TIMEOUT_SECONDS", "60")),
    )

    config.checkin_rate_limit = os.getenv("CHECKIN_RATE_LIMIT", config.checkin_rate_limit)

    origins = os.getenv("ALLOWED_ORIGINS")
    if origins:
        config.allowed_origins = [o.strip() for o in origins.split(",") if o.strip()]

    return config
