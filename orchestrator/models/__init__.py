"""
Habit Saga Data Models Module
Pydantic schemas for rows, requests and narrative payloads.
"""

from .schemas import (
    # Enums
    CadenceType,
    ChapterOutcome,
    CheckInOutcome,
    CueType,
    GoalStatus,
    HabitFrequency,
    SubscriptionTier,
    TaskOutcome,
    Theme,
    # Habit plan helpers
    DEFAULT_DIFFICULTY,
    clamp_difficulty,
    # Row Models
    Cadence,
    Chapter,
    Goal,
    HabitMetrics,
    HabitTask,
    UsagePanel,
    UserRecord,
    # Request / Response Models
    CheckInRequest,
    CheckInResponse,
    CompleteGoalRequest,
    CompleteGoalResponse,
    CreateGoalRequest,
    CreateGoalResponse,
    Encouragement,
    EncouragementPayload,
    ErrorResponse,
    GenerateChapterImageRequest,
    GenerateChapterImageResponse,
    PanelQuotaInfo,
    Reflection,
    TaskCheckInResult,
    # Narrative Models
    ChapterNarrative,
    FinaleInput,
    FinaleNarrative,
    GoalContext,
    HabitPlanInput,
    NarrativeContext,
    OriginStory,
    OriginStoryInput,
    PanelImageInput,
    UserProfile,
)

__all__ = [
    "CadenceType",
    "ChapterOutcome",
    "CheckInOutcome",
    "CueType",
    "GoalStatus",
    "HabitFrequency",
    "SubscriptionTier",
    "TaskOutcome",
    "Theme",
    "DEFAULT_DIFFICULTY",
    "clamp_difficulty",
    "Cadence",
    "Chapter",
    "Goal",
    "HabitMetrics",
    "HabitTask",
    "UsagePanel",
    "UserRecord",
    "CheckInRequest",
    "CheckInResponse",
    "CompleteGoalRequest",
    "CompleteGoalResponse",
    "CreateGoalRequest",
    "CreateGoalResponse",
    "Encouragement",
    "EncouragementPayload",
    "ErrorResponse",
    "GenerateChapterImageRequest",
    "GenerateChapterImageResponse",
    "PanelQuotaInfo",
    "Reflection",
    "TaskCheckInResult",
    "ChapterNarrative",
    "FinaleInput",
    "FinaleNarrative",
    "GoalContext",
    "HabitPlanInput",
    "NarrativeContext",
    "OriginStory",
    "OriginStoryInput",
    "PanelImageInput",
    "UserProfile",
]
