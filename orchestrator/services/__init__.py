"""
Habit Saga Services Module
Storage, auth and background integrations.
"""

from .background import BackgroundTaskRunner
from .security import configure_auth, decode_jwt, get_current_user, sanitize_for_prompt
from .supabase_persistence import SagaStore, SupabaseSagaStore

__all__ = [
    "BackgroundTaskRunner",
    "configure_auth",
    "decode_jwt",
    "get_current_user",
    "sanitize_for_prompt",
    "SagaStore",
    "SupabaseSagaStore",
]
