"""
Tests for dependency scheduling.
"""

from nightorders.missions.mission_types import Mission, Step, StepStatus
from nightorders.missions.scheduler import (
    blocked_steps,
    dependencies_met,
    next_runnable_step,
    planned_order,
)


def _mission(*steps: Step) -> Mission:
    return Mission(title="Test", objectives=["Ship it"], steps=list(steps))


class TestNextRunnableStep:
    """Tests for next_runnable_step."""

    def test_lowest_id_wins_regardless_of_declaration_order(self):
        mission = _mission(
            Step(2, "third", "coder"),
            Step(0, "first", "coder"),
            Step(1, "second", "coder"),
        )
        assert next_runnable_step(mission).step_id == 0

    def test_waits_for_dependencies(self):
        mission = _mission(
            Step(0, "first", "coder"),
            Step(1, "second", "coder", dependencies=(0,)),
        )
        mission.steps[0].status = StepStatus.IN_PROGRESS
        assert next_runnable_step(mission) is None

        mission.steps[0].status = StepStatus.COMPLETED
        assert next_runnable_step(mission).step_id == 1

    def test_skips_non_pending_steps(self):
        mission = _mission(
            Step(0, "first", "coder", status=StepStatus.FAILED),
            Step(1, "second", "coder"),
        )
        assert next_runnable_step(mission).step_id == 1

    def test_failed_or_skipped_dependency_never_satisfies(self):
        for status in (StepStatus.FAILED, StepStatus.SKIPPED):
            mission = _mission(
                Step(0, "first", "coder", status=status),
                Step(1, "second", "coder", dependencies=(0,)),
            )
            assert next_runnable_step(mission) is None

    def test_missing_dependency_never_satisfies(self):
        mission = _mission(Step(0, "first", "coder", dependencies=(7,)))
        assert not dependencies_met(mission, mission.steps[0])
        assert next_runnable_step(mission) is None

    def test_is_pure(self):
        mission = _mission(Step(0, "first", "coder"), Step(1, "second", "coder"))
        next_runnable_step(mission)
        next_runnable_step(mission)
        assert all(s.status == StepStatus.PENDING for s in mission.steps)

    def test_empty_mission(self):
        assert next_runnable_step(_mission()) is None


class TestBlockedSteps:
    """Tests for blocked_steps."""

    def test_transitively_blocked(self):
        mission = _mission(
            Step(0, "first", "coder", status=StepStatus.FAILED),
            Step(1, "second", "coder", dependencies=(0,)),
            Step(2, "third", "coder", dependencies=(1,)),
            Step(3, "independent", "coder"),
        )
        assert [s.step_id for s in blocked_steps(mission)] == [1, 2]

    def test_nothing_blocked_in_fresh_mission(self):
        mission = _mission(Step(0, "first", "coder"), Step(1, "second", "coder", dependencies=(0,)))
        assert blocked_steps(mission) == []


class TestPlannedOrder:
    """Tests for planned_order."""

    def test_diamond(self):
        mission = _mission(
            Step(3, "merge", "reviewer", dependencies=(1, 2)),
            Step(0, "root", "coder"),
            Step(1, "left", "coder", dependencies=(0,)),
            Step(2, "right", "coder", dependencies=(0,)),
        )
        assert planned_order(mission) == [0, 1, 2, 3]
        assert all(s.status == StepStatus.PENDING for s in mission.steps)

    def test_cycle_is_left_out(self):
        mission = _mission(
            Step(0, "root", "coder"),
            Step(1, "a", "coder", dependencies=(2,)),
            Step(2, "b", "coder", dependencies=(1,)),
        )
        assert planned_order(mission) == [0]
