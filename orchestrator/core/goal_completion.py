"""
Goal completion: closes a saga with a season finale chapter.

The finale narrative degrades to a fixed text when the provider fails. The
finale panel follows the tier allowance without the cadence gate and never
fails the request.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional

from agents.narrative_agents import finale_defaults
from models import (
    Chapter,
    ChapterOutcome,
    CompleteGoalRequest,
    CompleteGoalResponse,
    FinaleInput,
    FinaleNarrative,
    Goal,
    GoalStatus,
    SubscriptionTier,
    UserRecord,
)

from core.context_window import ContextWindow, build_context_window
from core.errors import (
    ChapterIndexConflict,
    DependencyError,
    StorageError,
    forbidden,
    not_found,
    validation_error,
)
from core.panel_orchestrator import PanelGenerationOrchestrator
from core.quota_ledger import evaluate_quota

logger = logging.getLogger("orchestrator.goal_completion")

FINALE_LAST_CHAPTER_SUMMARY = "The saga concluded with a grand finale."


class GoalCompletionService:
    """Writes the finale chapter and marks the goal completed."""

    def __init__(
        self,
        store,
        narrative_provider,
        panel_orchestrator: PanelGenerationOrchestrator,
        chapter_index_attempts: int = 3,
        today: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.narrative_provider = narrative_provider
        self.panel_orchestrator = panel_orchestrator
        self.chapter_index_attempts = chapter_index_attempts
        self._today = today or (lambda: datetime.now(timezone.utc).date())

    async def _load_goal(self, goal_id: str, user_id: str) -> Goal:
        try:
            goal = await self.store.get_goal(goal_id)
        except StorageError as e:
            logger.error(f"[_load_goal] {e}")
            raise DependencyError("INTERNAL_ERROR", "Failed to load goal", detail=str(e))
        if goal is None:
            raise not_found("GOAL_NOT_FOUND", "Goal not found")
        if goal.user_id != user_id:
            raise forbidden("Goal does not belong to user")
        return goal

    async def _load_user(self, user_id: str) -> Optional[UserRecord]:
        """The user row only feeds the panel; without it the finale still happens."""
        try:
            return await self.store.get_user(user_id)
        except StorageError as e:
            logger.warning(f"[_load_user] Could not read user {user_id}, treating as free tier: {e}")
            return None

    async def generate_finale(self, goal: Goal, total_chapters: int) -> FinaleNarrative:
        if self.narrative_provider is None:
            logger.warning("[generate_finale] No narrative provider configured, using finale fallback")
            return finale_defaults()

        data = FinaleInput(
            hero_profile=goal.hero_profile or "A determined hero",
            theme_profile=goal.theme_profile or f"A {goal.theme} world",
            goal_title=goal.title,
            target_date=goal.target_date,
            total_chapters=total_chapters,
            saga_summary_short=goal.saga_summary_short,
            last_chapter_summary=goal.last_chapter_summary,
        )
        try:
            return await self.narrative_provider.generate_finale(data)
        except Exception as e:
            logger.error(f"[generate_finale] Finale generation failed, using fallback: {e}")
            return finale_defaults()

    async def _insert_finale(self, goal: Goal, user_id: str, finale: FinaleNarrative, window: ContextWindow) -> Chapter:
        for attempt in range(1, self.chapter_index_attempts + 1):
            if attempt > 1:
                window = await build_context_window(self.store, goal.id)
            row = {
                "goal_id": goal.id,
                "user_id": user_id,
                "chapter_index": window.next_chapter_index,
                "date": self._today().isoformat(),
                "outcome": ChapterOutcome.COMPLETED.value,
                "chapter_title": finale.finale_chapter_title,
                "chapter_text": finale.finale_chapter_text,
                "image_url": None,
            }
            try:
                return await self.store.insert_chapter(row)
            except ChapterIndexConflict as e:
                logger.warning(f"[_insert_finale] Attempt {attempt}/{self.chapter_index_attempts}: {e}")
            except StorageError as e:
                logger.error(f"[_insert_finale] {e}")
                raise DependencyError("CHAPTER_CREATE_ERROR", "Failed to create finale chapter", detail=str(e))

        raise DependencyError(
            "CHAPTER_CREATE_ERROR",
            "Failed to create finale chapter",
            detail=f"chapter_index still conflicting after {self.chapter_index_attempts} attempts",
        )

    async def _close_goal(self, goal: Goal, finale: FinaleNarrative) -> Goal:
        fields = {
            "status": GoalStatus.COMPLETED.value,
            "saga_summary_short": finale.final_saga_summary,
            "last_chapter_summary": FINALE_LAST_CHAPTER_SUMMARY,
        }
        try:
            updated = await self.store.update_goal(goal.id, fields)
        except StorageError as e:
            logger.error(f"[_close_goal] {e}")
            raise DependencyError("INTERNAL_ERROR", "Failed to complete goal", detail=str(e))
        return updated or goal.model_copy(update=fields)

    async def complete(self, user_id: str, request: CompleteGoalRequest) -> Dict[str, Any]:
        """
        Returns:
            {goal, finaleChapter, celebrationMessage{headline, body}, panelGenerated, canStartSeason2}

        Raises:
            CheckInError: VALIDATION_ERROR, GOAL_NOT_FOUND, FORBIDDEN,
            CHAPTER_FETCH_ERROR, CHAPTER_CREATE_ERROR, INTERNAL_ERROR
        """
        goal = await self._load_goal(request.goal_id, user_id)
        if goal.status == GoalStatus.COMPLETED.value:
            raise validation_error("Goal is already completed")

        window = await build_context_window(self.store, goal.id)
        finale = await self.generate_finale(goal, window.next_chapter_index)
        chapter = await self._insert_finale(goal, user_id, finale, window)
        logger.info(f"[complete] goal={goal.id} finale chapter {chapter.chapter_index}")

        completed_goal = await self._close_goal(goal, finale)

        panel_generated = False
        user = await self._load_user(user_id)
        tier = user.subscription_tier if user else SubscriptionTier.FREE.value
        try:
            quota = await evaluate_quota(self.store, user_id, tier)
        except StorageError as e:
            logger.warning(f"[complete] Could not read panel usage, skipping finale panel: {e}")
            quota = None
        if quota is not None and quota.has_quota:
            result = await self.panel_orchestrator.try_generate(completed_goal, chapter, user)
            if result.generated:
                panel_generated = True
                chapter = chapter.model_copy(update={"image_url": result.image_url})

        return CompleteGoalResponse(
            goal=completed_goal.model_dump(mode="json"),
            finaleChapter=chapter.model_dump(mode="json"),
            celebrationMessage=finale.celebration,
            panelGenerated=panel_generated,
        ).model_dump()
