"""
Check-in Coordinator

Sequences one check-in: validate, classify, build context, draft the
chapter, generate the narrative, persist summaries, maybe generate a panel,
and assemble the response.

Fatal steps raise CheckInError. Narrative, persistence-after-draft and
panel steps degrade instead of failing; no rollback of the draft chapter
is ever attempted.
"""

import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional

from models import (
    Chapter,
    ChapterNarrative,
    ChapterOutcome,
    CheckInRequest,
    CheckInResponse,
    EncouragementPayload,
    Goal,
    GoalContext,
    NarrativeContext,
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
from core.outcome_classifier import ClassifiedCheckIn, classify_check_in
from core.panel_orchestrator import PanelGenerationOrchestrator, user_profile_from
from core.quota_ledger import should_generate_panel

logger = logging.getLogger("orchestrator.checkin")

PENDING_CHAPTER_TITLE = "Pending..."

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def resolve_checkin_date(value: Optional[str], today: Optional[Callable[[], date]] = None) -> str:
    """
    A plain YYYY-MM-DD is stored verbatim; a full timestamp becomes its UTC
    calendar date; no value means today in UTC.

    Raises:
        ClientInputError: VALIDATION_ERROR for unparseable input.
    """
    if not value:
        current = today() if today else datetime.now(timezone.utc).date()
        return current.isoformat()

    value = value.strip()
    try:
        if _DATE_ONLY.match(value):
            return date.fromisoformat(value).isoformat()
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise validation_error("Invalid checkin_date. Must be an ISO date string (YYYY-MM-DD)")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).date().isoformat()


def goal_context_of(goal: Goal) -> GoalContext:
    return GoalContext(
        current_frequency=goal.context_current_frequency,
        biggest_blocker=goal.context_biggest_blocker,
        current_status=goal.context_current_status,
        notes=goal.context_notes,
        past_efforts=goal.context_past_efforts,
    )


class CheckInCoordinator:
    """Runs the check-in state machine against a SagaStore and providers."""

    def __init__(
        self,
        store,
        narrative_client,
        panel_orchestrator: PanelGenerationOrchestrator,
        chapter_index_attempts: int = 3,
        today: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.narrative_client = narrative_client
        self.panel_orchestrator = panel_orchestrator
        self.chapter_index_attempts = chapter_index_attempts
        self._today = today

    # ------------------------------------------------------------------
    # Step 1: request, goal and user
    # ------------------------------------------------------------------

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

    async def _load_user(self, user_id: str) -> UserRecord:
        try:
            user = await self.store.get_user(user_id)
        except StorageError as e:
            logger.error(f"[_load_user] {e}")
            raise DependencyError("USER_FETCH_ERROR", "Failed to fetch user record", detail=str(e))
        if user is None:
            raise DependencyError("USER_FETCH_ERROR", "Failed to fetch user record", detail=f"No user row for {user_id}")
        return user

    # ------------------------------------------------------------------
    # Steps 3-4: context window and draft chapter
    # ------------------------------------------------------------------

    async def _create_draft(
        self,
        user_id: str,
        request: CheckInRequest,
        classified: ClassifiedCheckIn,
        checkin_date: str,
    ):
        """Insert the draft, re-reading the window when another check-in took the index."""
        reflection = request.reflection
        for attempt in range(1, self.chapter_index_attempts + 1):
            window = await build_context_window(self.store, request.goal_id)
            draft = {
                "goal_id": request.goal_id,
                "user_id": user_id,
                "chapter_index": window.next_chapter_index,
                "date": checkin_date,
                "outcome": classified.outcome.value,
                "note": request.effective_note,
                "barrier": request.effective_barrier,
                "retry_plan": request.retry_plan,
                "tasks_results": classified.task_results,
                "tiny_adjustment": reflection.tiny_adjustment if reflection else None,
                "chapter_title": PENDING_CHAPTER_TITLE,
                "chapter_text": None,
                "image_url": None,
            }
            try:
                chapter = await self.store.insert_chapter(draft)
                return window, chapter
            except ChapterIndexConflict as e:
                logger.warning(f"[_create_draft] Attempt {attempt}/{self.chapter_index_attempts}: {e}")
            except StorageError as e:
                logger.error(f"[_create_draft] {e}")
                raise DependencyError("CHAPTER_CREATE_ERROR", "Failed to create draft chapter", detail=str(e))

        raise DependencyError(
            "CHAPTER_CREATE_ERROR",
            "Failed to create draft chapter",
            detail=f"chapter_index still conflicting after {self.chapter_index_attempts} attempts",
        )

    # ------------------------------------------------------------------
    # Step 5: narrative
    # ------------------------------------------------------------------

    def build_narrative_context(
        self,
        goal: Goal,
        user: UserRecord,
        window: ContextWindow,
        request: CheckInRequest,
        classified: ClassifiedCheckIn,
    ) -> NarrativeContext:
        return NarrativeContext(
            hero_profile=goal.hero_profile or "A determined hero.",
            theme_profile=goal.theme_profile or f"A {goal.theme} world.",
            saga_summary_short=goal.saga_summary_short,
            last_chapter_summary=goal.last_chapter_summary,
            previous_chapter_text=window.previous_chapter_text,
            previous_chapter_title=window.previous_chapter_title,
            older_chapter_summary=window.older_chapter_summary,
            outcome=ChapterOutcome(classified.outcome.value),
            note=request.effective_note,
            barrier=request.effective_barrier,
            retry_plan=request.effective_retry_plan,
            goal_title=goal.title,
            context=goal_context_of(goal),
            user_profile=user_profile_from(user),
        )

    # ------------------------------------------------------------------
    # Step 6: best-effort persistence
    # ------------------------------------------------------------------

    async def _persist_narrative(self, draft: Chapter, narrative: ChapterNarrative) -> Chapter:
        fields = {"chapter_title": narrative.chapter_title, "chapter_text": narrative.chapter_text}
        in_memory = draft.model_copy(update=fields)
        try:
            updated = await self.store.update_chapter(draft.id, fields)
        except StorageError as e:
            logger.error(f"[_persist_narrative] Failed to update chapter with narrative: {e}")
            return in_memory
        return updated or in_memory

    async def _persist_goal(self, goal: Goal, narrative: ChapterNarrative, classified: ClassifiedCheckIn) -> Goal:
        fields: Dict[str, Any] = {
            "saga_summary_short": narrative.new_saga_summary_short,
            "last_chapter_summary": narrative.new_last_chapter_summary,
        }
        if classified.habit_plan is not None:
            fields["habit_plan"] = [task.model_dump(mode="json") for task in classified.habit_plan]
        in_memory = goal.model_copy(update={
            "saga_summary_short": narrative.new_saga_summary_short,
            "last_chapter_summary": narrative.new_last_chapter_summary,
            "habit_plan": classified.habit_plan,
        })
        try:
            await self.store.update_goal(goal.id, fields)
        except StorageError as e:
            logger.error(f"[_persist_goal] Failed to update goal: {e}")
        return in_memory

    async def _reread_goal(self, fallback: Goal) -> Goal:
        try:
            goal = await self.store.get_goal(fallback.id)
        except StorageError as e:
            logger.warning(f"[_reread_goal] Falling back to in-memory goal: {e}")
            return fallback
        return goal or fallback

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def check_in(self, user_id: str, request: CheckInRequest) -> Dict[str, Any]:
        """
        Process one check-in for an authenticated user.

        Returns:
            {goal, chapter, encouragement{headline, body, microPlan}, panelGenerated}

        Raises:
            CheckInError: for every fatal step
        """
        if not request.has_task_results and not request.has_legacy_outcome:
            raise validation_error("Either outcome or task_results must be provided")
        checkin_date = resolve_checkin_date(request.checkin_date, self._today)

        goal = await self._load_goal(request.goal_id, user_id)
        user = await self._load_user(user_id)

        classified = classify_check_in(request, goal.habit_plan)
        logger.info(f"[check_in] goal={goal.id} outcome={classified.outcome.value} date={checkin_date}")

        window, draft = await self._create_draft(user_id, request, classified, checkin_date)
        chapter_index = draft.chapter_index

        context = self.build_narrative_context(goal, user, window, request, classified)
        narrative = await self.narrative_client.generate_or_fallback(context, chapter_index)

        chapter = await self._persist_narrative(draft, narrative)
        goal_in_memory = await self._persist_goal(goal, narrative, classified)

        panel_generated = False
        if await should_generate_panel(self.store, user_id, user.subscription_tier, chapter_index):
            result = await self.panel_orchestrator.try_generate(goal_in_memory, chapter, user)
            if result.generated:
                panel_generated = True
                chapter = chapter.model_copy(update={"image_url": result.image_url})

        final_goal = await self._reread_goal(goal_in_memory)

        return CheckInResponse(
            goal=final_goal.model_dump(mode="json"),
            chapter=chapter.model_dump(mode="json"),
            encouragement=EncouragementPayload(
                headline=narrative.encouragement.headline,
                body=narrative.encouragement.body,
                microPlan=narrative.micro_plan,
            ),
            panelGenerated=panel_generated,
        ).model_dump()
