"""
Habit plan normalization.

Raw provider output is coerced into at most three well-formed HabitTask
records with fresh ids and zeroed metrics.
"""

import logging
import uuid
from typing import Any, List, Optional

from models import (
    DEFAULT_DIFFICULTY,
    Cadence,
    CadenceType,
    CueType,
    HabitFrequency,
    HabitMetrics,
    HabitTask,
    clamp_difficulty,
)

logger = logging.getLogger("orchestrator.habit_plan")

MAX_HABIT_TASKS = 3

_CADENCE_FREQUENCY = {
    CadenceType.DAILY: HabitFrequency.DAILY,
    CadenceType.THREE_PER_WEEK: HabitFrequency.THREE_PER_WEEK,
}


def frequency_for(suggested: Any, cadence: Cadence) -> HabitFrequency:
    try:
        return HabitFrequency(suggested)
    except ValueError:
        return _CADENCE_FREQUENCY.get(cadence.type, HabitFrequency.WEEKLY)


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def normalize_task(raw: dict, cadence: Cadence) -> HabitTask:
    label = _text(raw.get("label")) or "Unnamed habit"
    cue_type = raw.get("cue_type")
    if cue_type not in (CueType.TIME_LOCATION.value, CueType.HABIT_STACK.value):
        cue_type = CueType.TIME_LOCATION.value
    return HabitTask(
        id=str(uuid.uuid4()),
        label=label,
        tiny_version=_text(raw.get("tiny_version")) or _text(raw.get("label")) or "Do one small thing",
        full_version=_text(raw.get("full_version")) or _text(raw.get("label")) or "Complete the full task",
        cue_type=CueType(cue_type),
        if_then=_text(raw.get("if_then")) or f"I will {_text(raw.get('label')) or 'work on my goal'}",
        habit_stack=_text(raw.get("habit_stack")),
        suggested_frequency=frequency_for(raw.get("suggested_frequency"), cadence),
        difficulty=clamp_difficulty(raw.get("difficulty")),
        active=True,
        metrics=HabitMetrics(),
    )


def build_fallback_habit_plan(goal_text: str, cadence: Cadence) -> List[HabitTask]:
    return [
        HabitTask(
            id=str(uuid.uuid4()),
            label=f"Work on: {goal_text[:50]}",
            tiny_version="Take one small step toward your goal",
            full_version="Complete a meaningful session",
            cue_type=CueType.TIME_LOCATION,
            if_then="I will work on my goal at a specific time and place",
            suggested_frequency=frequency_for(None, cadence),
            difficulty=DEFAULT_DIFFICULTY,
            active=True,
            metrics=HabitMetrics(),
        )
    ]


def normalize_habit_plan(raw: Any, goal_text: str, cadence: Cadence) -> List[HabitTask]:
    """
    Accepts a JSON array (or an object wrapping one under "tasks"/"habits").
    Anything else yields the single fallback habit.
    """
    if isinstance(raw, dict):
        raw = raw.get("tasks") or raw.get("habits")
    if not isinstance(raw, list):
        logger.warning("[normalize_habit_plan] Habit plan is not a list, using fallback habit")
        return build_fallback_habit_plan(goal_text, cadence)

    tasks = [item for item in raw if isinstance(item, dict)]
    if not tasks:
        logger.warning("[normalize_habit_plan] Habit plan has no usable tasks, using fallback habit")
        return build_fallback_habit_plan(goal_text, cadence)
    if len(raw) > MAX_HABIT_TASKS:
        logger.info(f"[normalize_habit_plan] Got {len(raw)} tasks, keeping the first {MAX_HABIT_TASKS}")

    return [normalize_task(task, cadence) for task in tasks[:MAX_HABIT_TASKS]]
