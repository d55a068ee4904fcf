"""
Panel Generation Orchestrator

Generates a chapter's panel, uploads it, attaches the public URL to the
chapter and appends one usage row. A chapter carries a panel URL only when
its usage row exists. In the check-in flow every failure is logged and
swallowed.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from models import Chapter, ChapterOutcome, Goal, PanelImageInput, UserProfile, UserRecord

from core.errors import PanelGenerationError, StorageError

logger = logging.getLogger("orchestrator.panel")


@dataclass
class PanelResult:
    generated: bool
    image_url: Optional[str] = None


def panel_storage_path(user_id: str, goal_id: str, chapter_index: int) -> str:
    return f"{user_id}/{goal_id}/chapter_{chapter_index}.png"


def user_profile_from(user: Optional[UserRecord]) -> UserProfile:
    if user is None:
        return UserProfile()
    return UserProfile(name=user.display_name, age=user.age_range, bio=user.bio)


class PanelGenerationOrchestrator:
    """Runs image provider, object store and usage ledger in sequence."""

    def __init__(self, store, image_provider):
        self.store = store
        self.image_provider = image_provider

    def build_input(
        self,
        goal: Goal,
        chapter: Chapter,
        user: Optional[UserRecord],
        avatar_url: Optional[str] = None,
    ) -> PanelImageInput:
        return PanelImageInput(
            hero_profile=goal.hero_profile or "A determined hero.",
            theme_profile=goal.theme_profile or f"A {goal.theme} world.",
            theme=goal.theme,
            outcome=ChapterOutcome(chapter.outcome),
            chapter_title=chapter.chapter_title or "",
            chapter_text=chapter.chapter_text or "",
            avatar_url=avatar_url or (user.avatar_url if user else None),
            user_profile=user_profile_from(user),
        )

    async def generate(
        self,
        goal: Goal,
        chapter: Chapter,
        user: Optional[UserRecord],
        avatar_url: Optional[str] = None,
    ) -> str:
        """
        Generate, store and record a panel; returns the public URL.

        The chapter keeps its image_url only when the usage row was written.
        A failed ledger write detaches the URL again before re-raising.

        Raises:
            PanelGenerationError: image provider failure
            StorageError: upload, chapter update or ledger failure
        """
        if self.image_provider is None:
            raise PanelGenerationError("No image provider configured")

        image_bytes = await self.image_provider.generate_panel(
            self.build_input(goal, chapter, user, avatar_url=avatar_url)
        )
        path = panel_storage_path(chapter.user_id, chapter.goal_id, chapter.chapter_index)
        image_url = await self.store.upload_panel(path, image_bytes)
        await self.store.update_chapter(chapter.id, {"image_url": image_url})
        try:
            await self.store.record_usage_panel(chapter.user_id, chapter.goal_id, chapter.id)
        except StorageError as e:
            logger.error(f"[generate] Usage row not written for chapter {chapter.id}, detaching panel: {e}")
            await self._detach(chapter.id)
            raise
        logger.info(f"[generate] Panel stored for chapter {chapter.id} at {path}")
        return image_url

    async def _detach(self, chapter_id: str) -> None:
        try:
            await self.store.update_chapter(chapter_id, {"image_url": None})
        except StorageError as e:
            logger.error(f"[_detach] Could not clear image_url on chapter {chapter_id}: {e}")

    async def try_generate(
        self,
        goal: Goal,
        chapter: Chapter,
        user: Optional[UserRecord],
        avatar_url: Optional[str] = None,
    ) -> PanelResult:
        """Never raises: any failure means no panel."""
        try:
            image_url = await self.generate(goal, chapter, user, avatar_url=avatar_url)
        except (PanelGenerationError, StorageError) as e:
            logger.error(f"[try_generate] Panel generation failed for chapter {chapter.id}: {e}")
            return PanelResult(generated=False)
        except Exception as e:
            logger.exception(f"[try_generate] Unexpected panel failure for chapter {chapter.id}: {e}")
            return PanelResult(generated=False)
        return PanelResult(generated=True, image_url=image_url)
