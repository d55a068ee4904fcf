"""
Goal creation with origin chapter.

Origin story and habit plan are generated concurrently and joined with
partial success allowed. Moderation logging and the origin panel run as
detached background tasks.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from agents.narrative_agents import origin_story_defaults
from models import (
    ChapterOutcome,
    CreateGoalRequest,
    CreateGoalResponse,
    GoalStatus,
    HabitPlanInput,
    HabitTask,
    OriginStory,
    OriginStoryInput,
    UserProfile,
    UserRecord,
)
from services.background import BackgroundTaskRunner
from services.moderation import build_goal_moderation_entries, log_goal_content_for_review

from core.errors import DependencyError, StorageError
from core.panel_orchestrator import PanelGenerationOrchestrator, user_profile_from
from core.quota_ledger import evaluate_quota

logger = logging.getLogger("orchestrator.goal_creation")

ORIGIN_CHAPTER_INDEX = 1


class GoalCreationService:
    """Creates a goal, its habit plan and chapter 1."""

    def __init__(
        self,
        store,
        narrative_provider,
        panel_orchestrator: PanelGenerationOrchestrator,
        background: BackgroundTaskRunner,
    ):
        self.store = store
        self.narrative_provider = narrative_provider
        self.panel_orchestrator = panel_orchestrator
        self.background = background

    async def _load_user(self, user_id: str) -> UserRecord:
        try:
            user = await self.store.get_user(user_id)
        except StorageError as e:
            logger.error(f"[_load_user] {e}")
            raise DependencyError("USER_FETCH_ERROR", "Failed to fetch user record", detail=str(e))
        if user is None:
            raise DependencyError("USER_FETCH_ERROR", "Failed to fetch user record", detail=f"No user row for {user_id}")
        return user

    async def _generate(self, request: CreateGoalRequest, user: UserRecord, avatar_url: Optional[str]):
        """Run both generations; each failure degrades independently."""
        if self.narrative_provider is None:
            logger.warning("[_generate] No narrative provider configured, using origin fallback")
            return OriginStory(**origin_story_defaults(request.theme.value)), None

        origin_input = OriginStoryInput(
            theme=request.theme.value,
            goal_title=request.title,
            goal_description=request.description,
            selfie_public_url=avatar_url,
            context=request.goal_context,
            user_profile=user_profile_from(user),
        )
        plan_input = HabitPlanInput(
            goal_text=request.title,
            goal_description=request.description,
            cadence=request.cadence,
            target_date=request.target_date,
            context=request.goal_context,
            time_window=request.habit_cue_time_window,
            location=request.habit_cue_location,
            user_profile=UserProfile(name=user.display_name, age=user.age_range),
        )

        origin_result, plan_result = await asyncio.gather(
            self.narrative_provider.generate_origin_story(origin_input),
            self.narrative_provider.generate_habit_plan(plan_input),
            return_exceptions=True,
        )

        if isinstance(origin_result, BaseException):
            logger.error(f"[_generate] Origin story generation failed: {origin_result}")
            origin_result = OriginStory(**origin_story_defaults(request.theme.value))

        habit_plan: Optional[List[HabitTask]] = None
        if isinstance(plan_result, BaseException):
            logger.error(f"[_generate] Habit plan generation failed: {plan_result}")
        else:
            habit_plan = plan_result
            logger.info(f"[_generate] Generated {len(habit_plan)} habit(s) for goal '{request.title[:50]}'")

        return origin_result, habit_plan

    async def create(self, user_id: str, request: CreateGoalRequest) -> Dict[str, Any]:
        """
        Returns:
            {goal, originChapter}

        Raises:
            CheckInError: USER_FETCH_ERROR, GOAL_CREATE_ERROR, CHAPTER_CREATE_ERROR
        """
        user = await self._load_user(user_id)
        avatar_url = request.selfie_public_url or user.avatar_url

        origin, habit_plan = await self._generate(request, user, avatar_url)

        goal_row = {
            "user_id": user_id,
            "title": request.title,
            "description": request.description,
            "target_date": request.target_date,
            "cadence": request.cadence.model_dump(mode="json"),
            "theme": request.theme.value,
            "hero_profile": origin.hero_profile,
            "theme_profile": origin.theme_profile,
            "saga_summary_short": origin.saga_summary_short,
            "last_chapter_summary": origin.last_chapter_summary,
            "habit_plan": [task.model_dump(mode="json") for task in habit_plan] if habit_plan is not None else None,
            "status": GoalStatus.ACTIVE.value,
            "context_current_frequency": request.context_current_frequency,
            "context_biggest_blocker": request.context_biggest_blocker,
            "context_current_status": request.context_current_status,
            "context_notes": request.context_notes,
            "context_past_efforts": request.context_past_efforts,
            "habit_cue_time_window": request.habit_cue_time_window,
            "habit_cue_location": request.habit_cue_location,
        }
        try:
            goal = await self.store.insert_goal(goal_row)
        except StorageError as e:
            logger.error(f"[create] {e}")
            raise DependencyError("GOAL_CREATE_ERROR", "Failed to create goal", detail=str(e))

        entries = build_goal_moderation_entries(
            user_id,
            goal.id,
            request.title,
            description=request.description,
            context_notes=request.context_notes,
            context_blocker=request.context_biggest_blocker,
            context_past_efforts=request.context_past_efforts,
        )
        self.background.spawn(log_goal_content_for_review(self.store, entries), name=f"moderation-{goal.id}")

        can_generate_panel = False
        try:
            quota = await evaluate_quota(self.store, user_id, user.subscription_tier)
            can_generate_panel = quota.has_quota
        except StorageError as e:
            logger.warning(f"[create] Could not read panel usage, skipping origin panel: {e}")

        chapter_row = {
            "goal_id": goal.id,
            "user_id": user_id,
            "chapter_index": ORIGIN_CHAPTER_INDEX,
            "date": datetime.now(timezone.utc).date().isoformat(),
            "outcome": ChapterOutcome.ORIGIN.value,
            "chapter_title": origin.origin_chapter_title,
            "chapter_text": origin.origin_chapter_text,
            "image_url": None,
        }
        try:
            chapter = await self.store.insert_chapter(chapter_row)
        except StorageError as e:
            logger.error(f"[create] {e}")
            raise DependencyError("CHAPTER_CREATE_ERROR", "Failed to create origin chapter", detail=str(e))

        if can_generate_panel:
            self.background.spawn(
                self.panel_orchestrator.try_generate(goal, chapter, user, avatar_url=avatar_url),
                name=f"origin-panel-{chapter.id}",
            )

        return CreateGoalResponse(
            goal=goal.model_dump(mode="json"),
            originChapter=chapter.model_dump(mode="json"),
        ).model_dump()
