"""
Supabase Persistence Service for Habit Saga

Relational and object storage for goals, chapters, panel usage and
moderation logs. Lookups return None when a row is absent; transport and
API failures raise StorageError so the pipeline can decide what is fatal.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from core.errors import ChapterIndexConflict, StorageError
from models import Chapter, Goal, UsagePanel, UserRecord

logger = logging.getLogger("orchestrator.storage")

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"

USER_PROFILE_COLUMNS = "id, subscription_tier, display_name, age_range, bio, avatar_url"


class SagaStore(ABC):
    """Storage interface used by the check-in pipeline."""

    @abstractmethod
    async def get_goal(self, goal_id: str) -> Optional[Goal]:
        pass

    @abstractmethod
    async def insert_goal(self, data: Dict[str, Any]) -> Goal:
        pass

    @abstractmethod
    async def update_goal(self, goal_id: str, fields: Dict[str, Any]) -> Optional[Goal]:
        pass

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        pass

    @abstractmethod
    async def get_recent_chapters(self, goal_id: str, limit: int = 2) -> List[Chapter]:
        """Most recent chapters of a goal, highest chapter_index first."""
        pass

    @abstractmethod
    async def get_chapter(self, chapter_id: str) -> Optional[Chapter]:
        pass

    @abstractmethod
    async def insert_chapter(self, data: Dict[str, Any]) -> Chapter:
        """
        Raises:
            ChapterIndexConflict: if (goal_id, chapter_index) is taken.
        """
        pass

    @abstractmethod
    async def update_chapter(self, chapter_id: str, fields: Dict[str, Any]) -> Optional[Chapter]:
        pass

    @abstractmethod
    async def count_usage_panels(self, user_id: str, since: Optional[datetime] = None) -> int:
        pass

    @abstractmethod
    async def record_usage_panel(self, user_id: str, goal_id: Optional[str], chapter_id: str) -> None:
        pass

    @abstractmethod
    async def upload_panel(self, path: str, image_bytes: bytes) -> str:
        """Upload PNG bytes with overwrite and return the public URL."""
        pass

    @abstractmethod
    async def log_moderation(self, entry: Dict[str, Any]) -> None:
        pass


class SupabaseSagaStore(SagaStore):
    """SagaStore over the supabase-py client."""

    def __init__(self, supabase_url: str, supabase_key: str, panels_bucket: str = "panels", client=None):
        """
        Initialize the Supabase store.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase service role key (for server-side operations)
            panels_bucket: Storage bucket for panel images
            client: Pre-built client, mainly for tests
        """
        self.supabase_url = supabase_url
        self.supabase_key = supabase_key
        self.panels_bucket = panels_bucket
        self.client = client

    def connect(self) -> None:
        if self.client is not None:
            return
        from supabase import create_client
        self.client = create_client(self.supabase_url, self.supabase_key)
        logger.info(f"[connect] Supabase client created for {self.supabase_url}")

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    async def get_goal(self, goal_id: str) -> Optional[Goal]:
        try:
            result = self.client.table("goals").select("*").eq("id", goal_id).limit(1).execute()
        except Exception as e:
            raise StorageError(f"Failed to fetch goal {goal_id}: {e}") from e
        if not result.data:
            return None
        return self._to_model(Goal, result.data[0])

    async def insert_goal(self, data: Dict[str, Any]) -> Goal:
        try:
            result = self.client.table("goals").insert(data).execute()
        except Exception as e:
            raise StorageError(f"Failed to insert goal: {e}") from e
        if not result.data:
            raise StorageError("Goal insert returned no row")
        return self._to_model(Goal, result.data[0])

    async def update_goal(self, goal_id: str, fields: Dict[str, Any]) -> Optional[Goal]:
        try:
            result = self.client.table("goals").update(fields).eq("id", goal_id).execute()
        except Exception as e:
            raise StorageError(f"Failed to update goal {goal_id}: {e}") from e
        if not result.data:
            return None
        return self._to_model(Goal, result.data[0])

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        try:
            result = (
                self.client.table("users")
                .select(USER_PROFILE_COLUMNS)
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise StorageError(f"Failed to fetch user {user_id}: {e}") from e
        if not result.data:
            return None
        return self._to_model(UserRecord, result.data[0])

    # ------------------------------------------------------------------
    # Chapters
    # ------------------------------------------------------------------

    async def get_recent_chapters(self, goal_id: str, limit: int = 2) -> List[Chapter]:
        try:
            result = (
                self.client.table("chapters")
                .select("*")
                .eq("goal_id", goal_id)
                .order("chapter_index", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            raise StorageError(f"Failed to fetch chapters for goal {goal_id}: {e}") from e
        return [self._to_model(Chapter, row) for row in result.data or []]

    async def get_chapter(self, chapter_id: str) -> Optional[Chapter]:
        try:
            result = self.client.table("chapters").select("*").eq("id", chapter_id).limit(1).execute()
        except Exception as e:
            raise StorageError(f"Failed to fetch chapter {chapter_id}: {e}") from e
        if not result.data:
            return None
        return self._to_model(Chapter, result.data[0])

    async def insert_chapter(self, data: Dict[str, Any]) -> Chapter:
        try:
            result = self.client.table("chapters").insert(data).execute()
        except Exception as e:
            if str(getattr(e, "code", "")) == UNIQUE_VIOLATION:
                raise ChapterIndexConflict(
                    f"Chapter {data.get('chapter_index')} already exists for goal {data.get('goal_id')}"
                ) from e
            raise StorageError(f"Failed to insert chapter: {e}") from e
        if not result.data:
            raise StorageError("Chapter insert returned no row")
        return self._to_model(Chapter, result.data[0])

    async def update_chapter(self, chapter_id: str, fields: Dict[str, Any]) -> Optional[Chapter]:
        try:
            result = self.client.table("chapters").update(fields).eq("id", chapter_id).execute()
        except Exception as e:
            raise StorageError(f"Failed to update chapter {chapter_id}: {e}") from e
        if not result.data:
            return None
        return self._to_model(Chapter, result.data[0])

    # ------------------------------------------------------------------
    # Panel usage ledger
    # ------------------------------------------------------------------

    async def count_usage_panels(self, user_id: str, since: Optional[datetime] = None) -> int:
        try:
            query = (
                self.client.table("usage_panels")
                .select("*", count="exact", head=True)
                .eq("user_id", user_id)
            )
            if since is not None:
                query = query.gte("created_at", since.isoformat())
            result = query.execute()
        except Exception as e:
            raise StorageError(f"Failed to count panel usage for {user_id}: {e}") from e
        return result.count or 0

    async def record_usage_panel(self, user_id: str, goal_id: Optional[str], chapter_id: str) -> None:
        try:
            row = UsagePanel(user_id=user_id, goal_id=goal_id, chapter_id=chapter_id)
            self.client.table("usage_panels").insert(row.model_dump(exclude={"created_at"})).execute()
        except Exception as e:
            raise StorageError(f"Failed to record panel usage for chapter {chapter_id}: {e}") from e

    # ------------------------------------------------------------------
    # Object storage
    # ------------------------------------------------------------------

    async def upload_panel(self, path: str, image_bytes: bytes) -> str:
        try:
            bucket = self.client.storage.from_(self.panels_bucket)
            bucket.upload(path, image_bytes, {"content-type": "image/png", "upsert": "true"})
            return bucket.get_public_url(path)
        except Exception as e:
            raise StorageError(f"Failed to upload panel {path}: {e}") from e

    # ------------------------------------------------------------------
    # Moderation
    # ------------------------------------------------------------------

    async def log_moderation(self, entry: Dict[str, Any]) -> None:
        try:
            self.client.table("moderation_logs").insert(entry).execute()
        except Exception as e:
            raise StorageError(f"Failed to write moderation log: {e}") from e

    @staticmethod
    def _to_model(model, row: Dict[str, Any]):
        try:
            return model.model_validate(row)
        except ValidationError as e:
            raise StorageError(f"Malformed {model.__name__} row: {e}") from e
