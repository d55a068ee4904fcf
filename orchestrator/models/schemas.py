"""
Pydantic data models for the Habit Saga check-in orchestrator.
Rows mirror the Supabase tables; request/response models mirror the API contract.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SubscriptionTier(str, Enum):
    """Subscription tiers that drive the panel quota."""
    FREE = "free"
    PLUS = "plus"
    PREMIUM = "premium"


class GoalStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ChapterOutcome(str, Enum):
    """Outcome stored on a chapter row. ORIGIN is reserved for chapter 1."""
    ORIGIN = "origin"
    COMPLETED = "completed"
    PARTIAL = "partial"
    MISSED = "missed"


class CheckInOutcome(str, Enum):
    """Canonical outcome of a check-in."""
    COMPLETED = "completed"
    PARTIAL = "partial"
    MISSED = "missed"


class TaskOutcome(str, Enum):
    """Per-habit effort level reported in a task-based check-in."""
    FULL = "full"
    TINY = "tiny"
    MISSED = "missed"


class CueType(str, Enum):
    TIME_LOCATION = "time_location"
    HABIT_STACK = "habit_stack"


class HabitFrequency(str, Enum):
    DAILY = "daily"
    THREE_PER_WEEK = "three_per_week"
    WEEKLY = "weekly"


class CadenceType(str, Enum):
    DAILY = "daily"
    THREE_PER_WEEK = "3x_week"
    CUSTOM = "custom"


class Theme(str, Enum):
    """Saga themes offered in the goal wizard."""
    SUPERHERO = "superhero"
    FANTASY = "fantasy"
    SCI_FI = "sci-fi"
    ANIME = "anime"
    NOIR = "noir"
    ACTION_ADVENTURE = "action_adventure"
    POP_REGENCY = "pop_regency"
    CUSTOM = "custom"


# ============================================================================
# Habit Plan Models
# ============================================================================

DEFAULT_DIFFICULTY = 2


def clamp_difficulty(value: Any) -> int:
    try:
        difficulty = int(value)
    except (TypeError, ValueError):
        return DEFAULT_DIFFICULTY
    if difficulty == 0:
        # zero reads as "not given"
        return DEFAULT_DIFFICULTY
    return min(5, max(1, difficulty))


def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


class HabitMetrics(BaseModel):
    """Cumulative per-task check-in counters."""
    total_full_completions: int = Field(default=0, ge=0)
    total_tiny_completions: int = Field(default=0, ge=0)
    total_missed: int = Field(default=0, ge=0)

    @field_validator("*", mode="before")
    @classmethod
    def non_negative_count(cls, v: Any) -> int:
        try:
            return max(0, int(v))
        except (TypeError, ValueError):
            return 0


class HabitTask(BaseModel):
    """
    One habit in a goal's habit plan.
    Uses implementation intentions (if_then) and optional habit stacking.

    Plans are stored as JSON on the goal row, so a damaged task is repaired
    on read instead of failing the whole goal.
    """
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    label: str
    tiny_version: str
    full_version: str
    cue_type: CueType = CueType.TIME_LOCATION
    if_then: str = ""
    habit_stack: Optional[str] = None
    suggested_frequency: HabitFrequency = HabitFrequency.DAILY
    difficulty: int = Field(default=DEFAULT_DIFFICULTY, ge=1, le=5)
    active: bool = True
    metrics: HabitMetrics = Field(default_factory=HabitMetrics)

    @model_validator(mode="before")
    @classmethod
    def repair_stored_task(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("id") is None:
            data.pop("id", None)
        else:
            data["id"] = str(data["id"])
        if _blank(data.get("label")):
            data["label"] = "Unnamed habit"
        for key in ("tiny_version", "full_version"):
            if _blank(data.get(key)):
                data[key] = data["label"]
        if data.get("cue_type") not in {c.value for c in CueType}:
            data["cue_type"] = CueType.TIME_LOCATION
        if data.get("suggested_frequency") not in {f.value for f in HabitFrequency}:
            data["suggested_frequency"] = HabitFrequency.DAILY
        if not isinstance(data.get("if_then"), str):
            data["if_then"] = ""
        if not isinstance(data.get("habit_stack"), str):
            data["habit_stack"] = None
        if not isinstance(data.get("active", True), bool):
            data["active"] = True
        if not isinstance(data.get("metrics"), (dict, HabitMetrics)):
            data.pop("metrics", None)
        data["difficulty"] = clamp_difficulty(data.get("difficulty"))
        return data


class Cadence(BaseModel):
    type: CadenceType
    details: Optional[str] = None


# ============================================================================
# Row Models
# ============================================================================

class Goal(BaseModel):
    """A user's goal and the compressed memory of its saga."""
    model_config = ConfigDict(extra="allow")

    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    target_date: Optional[str] = None
    cadence: Optional[Dict[str, Any]] = None
    theme: str = Theme.CUSTOM.value
    status: str = GoalStatus.ACTIVE.value

    hero_profile: Optional[str] = None
    theme_profile: Optional[str] = None
    saga_summary_short: Optional[str] = None
    last_chapter_summary: Optional[str] = None
    habit_plan: Optional[List[HabitTask]] = None

    context_current_frequency: Optional[str] = None
    context_biggest_blocker: Optional[str] = None
    context_current_status: Optional[str] = None
    context_notes: Optional[str] = None
    context_past_efforts: Optional[str] = None
    habit_cue_time_window: Optional[str] = None
    habit_cue_location: Optional[str] = None

    @field_validator("habit_plan", mode="before")
    @classmethod
    def drop_unreadable_tasks(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return None
        return [task for task in v if isinstance(task, (dict, HabitTask))]


class Chapter(BaseModel):
    """One persisted narrative unit of a saga."""
    model_config = ConfigDict(extra="allow")

    id: str
    goal_id: str
    user_id: str
    chapter_index: int = Field(..., ge=1)
    date: str  # YYYY-MM-DD, stored verbatim
    outcome: ChapterOutcome
    note: Optional[str] = None
    barrier: Optional[str] = None
    retry_plan: Optional[str] = None
    tasks_results: Optional[Dict[str, TaskOutcome]] = None
    tiny_adjustment: Optional[str] = None
    chapter_title: Optional[str] = None
    chapter_text: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[str] = None


class UserRecord(BaseModel):
    """Profile fields the pipeline reads from the users table."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    subscription_tier: str = SubscriptionTier.FREE.value
    display_name: Optional[str] = None
    age_range: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None


class UsagePanel(BaseModel):
    """Append-only ledger row for one successful panel generation."""
    user_id: str
    goal_id: Optional[str] = None
    chapter_id: str
    created_at: Optional[datetime] = None


# ============================================================================
# Check-in Request / Response Models
# ============================================================================

class TaskCheckInResult(BaseModel):
    habit_id: str
    outcome: TaskOutcome


class Reflection(BaseModel):
    note: Optional[str] = None
    barrier: Optional[str] = None
    tiny_adjustment: Optional[str] = None


class CheckInRequest(BaseModel):
    """
    Check-in payload. Either a legacy single outcome or a list of per-task
    results; the Outcome Classifier resolves which branch is used.
    """
    goal_id: str = Field(..., min_length=1)
    outcome: Optional[CheckInOutcome] = None
    task_results: Optional[List[TaskCheckInResult]] = None
    note: Optional[str] = None
    barrier: Optional[str] = None
    retry_plan: Optional[str] = None
    checkin_date: Optional[str] = None
    reflection: Optional[Reflection] = None

    @property
    def has_task_results(self) -> bool:
        return bool(self.task_results)

    @property
    def has_legacy_outcome(self) -> bool:
        return self.outcome is not None

    @property
    def effective_note(self) -> Optional[str]:
        return (self.reflection.note if self.reflection else None) or self.note

    @property
    def effective_barrier(self) -> Optional[str]:
        return (self.reflection.barrier if self.reflection else None) or self.barrier

    @property
    def effective_retry_plan(self) -> Optional[str]:
        """Retry plan fed to the narrative: the reflection's tiny adjustment wins."""
        return (self.reflection.tiny_adjustment if self.reflection else None) or self.retry_plan


class Encouragement(BaseModel):
    headline: str
    body: str


class EncouragementPayload(Encouragement):
    microPlan: str


class CheckInResponse(BaseModel):
    goal: Dict[str, Any]
    chapter: Dict[str, Any]
    encouragement: EncouragementPayload
    panelGenerated: bool


class ErrorResponse(BaseModel):
    error: str
    message: str
    code: Optional[str] = None


class PanelQuotaInfo(BaseModel):
    tier: str
    limit: int
    used: int
    remaining: int
    window: str  # "lifetime" or "monthly"


# ============================================================================
# Narrative Models
# ============================================================================

class UserProfile(BaseModel):
    name: Optional[str] = None
    age: Optional[str] = None
    bio: Optional[str] = None


class GoalContext(BaseModel):
    """Onboarding context captured in the goal wizard."""
    current_frequency: Optional[str] = None
    biggest_blocker: Optional[str] = None
    current_status: Optional[str] = None
    notes: Optional[str] = None
    past_efforts: Optional[str] = None


class NarrativeContext(BaseModel):
    """Everything the narrative provider needs to write the next chapter (N+2 context)."""
    hero_profile: str
    theme_profile: str
    saga_summary_short: Optional[str] = None
    last_chapter_summary: Optional[str] = None
    previous_chapter_text: Optional[str] = None
    previous_chapter_title: Optional[str] = None
    older_chapter_summary: Optional[str] = None
    outcome: ChapterOutcome
    note: Optional[str] = None
    barrier: Optional[str] = None
    retry_plan: Optional[str] = None
    goal_title: Optional[str] = None
    context: GoalContext = Field(default_factory=GoalContext)
    user_profile: UserProfile = Field(default_factory=UserProfile)


class ChapterNarrative(BaseModel):
    """Narrative provider output for one chapter."""
    chapter_title: str
    chapter_text: str
    new_saga_summary_short: str
    new_last_chapter_summary: str
    encouragement: Encouragement
    micro_plan: str


class OriginStoryInput(BaseModel):
    theme: str
    goal_title: str
    goal_description: Optional[str] = None
    selfie_public_url: Optional[str] = None
    context: GoalContext = Field(default_factory=GoalContext)
    user_profile: UserProfile = Field(default_factory=UserProfile)


class OriginStory(BaseModel):
    hero_profile: str
    theme_profile: str
    origin_chapter_title: str
    origin_chapter_text: str
    saga_summary_short: str
    last_chapter_summary: str


class HabitPlanInput(BaseModel):
    goal_text: str
    goal_description: Optional[str] = None
    cadence: Cadence
    target_date: str
    context: GoalContext = Field(default_factory=GoalContext)
    time_window: Optional[str] = None
    location: Optional[str] = None
    user_profile: UserProfile = Field(default_factory=UserProfile)


class PanelImageInput(BaseModel):
    hero_profile: str
    theme_profile: str
    theme: Optional[str] = None
    outcome: ChapterOutcome
    chapter_title: str
    chapter_text: str
    avatar_url: Optional[str] = None
    user_profile: UserProfile = Field(default_factory=UserProfile)


class FinaleInput(BaseModel):
    """Saga memory handed to the finale prompt."""
    hero_profile: str
    theme_profile: str
    goal_title: str
    target_date: Optional[str] = None
    total_chapters: int = Field(..., ge=1)
    saga_summary_short: Optional[str] = None
    last_chapter_summary: Optional[str] = None


class FinaleNarrative(BaseModel):
    finale_chapter_title: str
    finale_chapter_text: str
    final_saga_summary: str
    celebration: Encouragement


# ============================================================================
# Goal Creation / Async Image Models
# ============================================================================

class CreateGoalRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    target_date: str = Field(..., min_length=1)
    cadence: Cadence
    theme: Theme
    selfie_public_url: Optional[str] = None
    context_current_frequency: Optional[str] = None
    context_biggest_blocker: Optional[str] = None
    context_current_status: Optional[str] = None
    context_notes: Optional[str] = None
    context_past_efforts: Optional[str] = None
    habit_cue_time_window: Optional[str] = None
    habit_cue_location: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v

    @property
    def goal_context(self) -> GoalContext:
        return GoalContext(
            current_frequency=self.context_current_frequency,
            biggest_blocker=self.context_biggest_blocker,
            current_status=self.context_current_status,
            notes=self.context_notes,
            past_efforts=self.context_past_efforts,
        )


class CreateGoalResponse(BaseModel):
    goal: Dict[str, Any]
    originChapter: Dict[str, Any]


class GenerateChapterImageRequest(BaseModel):
    chapter_id: str = Field(..., min_length=1)


class GenerateChapterImageResponse(BaseModel):
    success: bool
    image_url: Optional[str] = None
    skipped: bool = False


# ============================================================================
# Goal Completion Models
# ============================================================================

class CompleteGoalRequest(BaseModel):
    goal_id: str = Field(..., min_length=1)


class CompleteGoalResponse(BaseModel):
    goal: Dict[str, Any]
    finaleChapter: Dict[str, Any]
    celebrationMessage: Encouragement
    panelGenerated: bool
    canStartSeason2: bool = True
