"""
On-demand panel generation for an existing chapter.
"""

import logging
from typing import Any, Dict

from models import GenerateChapterImageResponse

from core.errors import (
    CheckInError,
    DependencyError,
    PanelGenerationError,
    StorageError,
    forbidden,
    not_found,
)
from core.panel_orchestrator import PanelGenerationOrchestrator
from core.quota_ledger import evaluate_quota

logger = logging.getLogger("orchestrator.chapter_image")


async def generate_chapter_image(
    store,
    panel_orchestrator: PanelGenerationOrchestrator,
    user_id: str,
    chapter_id: str,
) -> Dict[str, Any]:
    """
    Attach a panel to a chapter the caller owns.

    Returns:
        {success, image_url, skipped}

    Raises:
        CheckInError: CHAPTER_NOT_FOUND, GOAL_NOT_FOUND, FORBIDDEN,
        QUOTA_EXCEEDED, PANEL_GENERATION_ERROR, INTERNAL_ERROR
    """
    try:
        chapter = await store.get_chapter(chapter_id)
        if chapter is None:
            raise not_found("CHAPTER_NOT_FOUND", "Chapter not found")
        goal = await store.get_goal(chapter.goal_id)
        if goal is None:
            raise not_found("GOAL_NOT_FOUND", "Goal not found")
        if goal.user_id != user_id:
            raise forbidden("Chapter does not belong to user")

        if chapter.image_url:
            logger.info(f"[generate_chapter_image] Chapter {chapter_id} already has an image")
            return GenerateChapterImageResponse(success=True, image_url=chapter.image_url, skipped=True).model_dump()

        user = await store.get_user(user_id)
        quota = await evaluate_quota(store, user_id, user.subscription_tier if user else None)
    except StorageError as e:
        logger.error(f"[generate_chapter_image] {e}")
        raise DependencyError("INTERNAL_ERROR", "Failed to load chapter", detail=str(e))

    if not quota.has_quota:
        raise CheckInError(
            "QUOTA_EXCEEDED",
            f"Panel quota reached ({quota.used}/{quota.limit})",
            status_code=429,
            error="Too many requests",
        )

    try:
        image_url = await panel_orchestrator.generate(goal, chapter, user)
    except (PanelGenerationError, StorageError) as e:
        logger.error(f"[generate_chapter_image] Panel failed for chapter {chapter_id}: {e}")
        raise CheckInError(
            "PANEL_GENERATION_ERROR",
            "Failed to generate chapter image",
            status_code=502,
            error="Bad gateway",
        )

    return GenerateChapterImageResponse(success=True, image_url=image_url).model_dump()
