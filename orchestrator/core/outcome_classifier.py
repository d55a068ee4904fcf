"""
Outcome Classifier

Reduces a check-in request, legacy single-outcome or per-task, into one
canonical outcome plus an updated copy of the goal's habit plan.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from models import CheckInOutcome, CheckInRequest, HabitTask, TaskOutcome

from core.errors import validation_error

logger = logging.getLogger("orchestrator.classifier")

_METRIC_FIELDS = {
    TaskOutcome.FULL: "total_full_completions",
    TaskOutcome.TINY: "total_tiny_completions",
    TaskOutcome.MISSED: "total_missed",
}


@dataclass
class ClassifiedCheckIn:
    outcome: CheckInOutcome
    task_results: Optional[Dict[str, str]]
    habit_plan: Optional[List[HabitTask]]


def tally_outcome(results: List[TaskOutcome]) -> CheckInOutcome:
    """completed iff every task was full; partial iff any full/tiny; else missed."""
    full = sum(1 for r in results if r == TaskOutcome.FULL)
    tiny = sum(1 for r in results if r == TaskOutcome.TINY)
    if full == len(results):
        return CheckInOutcome.COMPLETED
    if full + tiny > 0:
        return CheckInOutcome.PARTIAL
    return CheckInOutcome.MISSED


def classify_check_in(
    request: CheckInRequest,
    habit_plan: Optional[List[HabitTask]],
) -> ClassifiedCheckIn:
    """
    Resolve the polymorphic check-in into a canonical record.

    The task-based branch wins when both `outcome` and `task_results` are
    present. The input habit plan is never mutated; metric increments are
    applied to a deep copy, and unknown habit ids are ignored.

    Raises:
        ClientInputError: VALIDATION_ERROR when neither branch is present.
    """
    if request.has_task_results:
        results = request.task_results
        outcome = tally_outcome([r.outcome for r in results])

        updated_plan = copy.deepcopy(habit_plan) if habit_plan else habit_plan
        if updated_plan:
            by_id = {task.id: task for task in updated_plan}
            for result in results:
                task = by_id.get(result.habit_id)
                if task is None:
                    logger.debug(f"[classify_check_in] Ignoring unknown habit id {result.habit_id}")
                    continue
                field = _METRIC_FIELDS[result.outcome]
                setattr(task.metrics, field, getattr(task.metrics, field) + 1)

        task_map = {r.habit_id: r.outcome.value for r in results}
        return ClassifiedCheckIn(outcome=outcome, task_results=task_map, habit_plan=updated_plan)

    if request.has_legacy_outcome:
        return ClassifiedCheckIn(outcome=request.outcome, task_results=None, habit_plan=habit_plan)

    raise validation_error("Either outcome or a non-empty task_results list is required")
