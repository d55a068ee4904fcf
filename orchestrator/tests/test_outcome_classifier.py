"""
Unit tests for the Outcome Classifier.

Tests cover:
- Tallying per-task outcomes into one canonical outcome
- Metric increments on a copy of the habit plan
- Branch precedence and validation
"""

import pytest

from core.errors import ClientInputError
from core.outcome_classifier import classify_check_in, tally_outcome
from models import CheckInOutcome, CheckInRequest, HabitMetrics, HabitTask, TaskOutcome


def _plan():
    return [
        HabitTask(id="a", label="Run", tiny_version="Walk", full_version="Run 5k"),
        HabitTask(
            id="b",
            label="Stretch",
            tiny_version="1 stretch",
            full_version="10 min",
            metrics=HabitMetrics(total_full_completions=2, total_tiny_completions=1, total_missed=4),
        ),
    ]


class TestTallyOutcome:
    """Tests for the counting rule."""

    def test_all_full_is_completed(self):
        assert tally_outcome([TaskOutcome.FULL, TaskOutcome.FULL]) == CheckInOutcome.COMPLETED

    def test_mixed_full_and_missed_is_partial(self):
        assert tally_outcome([TaskOutcome.FULL, TaskOutcome.MISSED]) == CheckInOutcome.PARTIAL

    def test_only_tiny_is_partial(self):
        assert tally_outcome([TaskOutcome.TINY, TaskOutcome.MISSED]) == CheckInOutcome.PARTIAL

    def test_all_missed_is_missed(self):
        assert tally_outcome([TaskOutcome.MISSED, TaskOutcome.MISSED]) == CheckInOutcome.MISSED


class TestClassifyCheckIn:
    """Tests for classify_check_in."""

    def test_task_branch_increments_metrics_on_copy(self):
        """Counters increase by one per result and the input plan is untouched."""
        plan = _plan()
        request = CheckInRequest(
            goal_id="g1",
            task_results=[
                {"habit_id": "a", "outcome": "full"},
                {"habit_id": "b", "outcome": "tiny"},
            ],
        )

        result = classify_check_in(request, plan)

        assert result.outcome == CheckInOutcome.PARTIAL
        assert result.task_results == {"a": "full", "b": "tiny"}
        updated = {t.id: t for t in result.habit_plan}
        assert updated["a"].metrics.total_full_completions == 1
        assert updated["b"].metrics.total_tiny_completions == 2
        assert updated["b"].metrics.total_full_completions == 2
        assert updated["b"].metrics.total_missed == 4
        # original untouched
        assert plan[0].metrics.total_full_completions == 0
        assert plan[1].metrics.total_tiny_completions == 1

    def test_unknown_habit_ids_are_ignored(self):
        request = CheckInRequest(
            goal_id="g1",
            task_results=[{"habit_id": "ghost", "outcome": "full"}],
        )

        result = classify_check_in(request, _plan())

        assert result.outcome == CheckInOutcome.COMPLETED
        assert all(t.metrics.total_full_completions in (0, 2) for t in result.habit_plan)
        assert result.habit_plan[0].metrics.total_full_completions == 0

    def test_task_branch_without_plan(self):
        request = CheckInRequest(goal_id="g1", task_results=[{"habit_id": "a", "outcome": "missed"}])

        result = classify_check_in(request, None)

        assert result.outcome == CheckInOutcome.MISSED
        assert result.habit_plan is None

    def test_task_branch_wins_over_legacy_outcome(self):
        request = CheckInRequest(
            goal_id="g1",
            outcome="completed",
            task_results=[{"habit_id": "a", "outcome": "missed"}],
        )

        result = classify_check_in(request, _plan())

        assert result.outcome == CheckInOutcome.MISSED

    def test_legacy_branch_passes_through(self):
        plan = _plan()
        request = CheckInRequest(goal_id="g1", outcome="partial")

        result = classify_check_in(request, plan)

        assert result.outcome == CheckInOutcome.PARTIAL
        assert result.task_results is None
        assert result.habit_plan is plan

    def test_empty_task_results_and_no_outcome_fails(self):
        request = CheckInRequest(goal_id="g1", task_results=[])

        with pytest.raises(ClientInputError) as exc_info:
            classify_check_in(request, _plan())

        assert exc_info.value.code == "VALIDATION_ERROR"
        assert exc_info.value.status_code == 400

    def test_repeated_check_ins_are_additive(self):
        plan = _plan()
        request = CheckInRequest(goal_id="g1", task_results=[{"habit_id": "a", "outcome": "missed"}])

        for _ in range(3):
            plan = classify_check_in(request, plan).habit_plan

        assert plan[0].metrics.total_missed == 3
