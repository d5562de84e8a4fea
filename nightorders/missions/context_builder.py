"""
Context Builder for Night Orders.

Assembles the ContextSnapshot injected into every step execution. The
builder is a pure function of the mission plus the engine's rolling
decision and deviation logs, so the same state always yields an equal
snapshot.
"""

from typing import List, Optional, Sequence

from ..config import OrchestrationConfig
from ..decisions.decision_record import Decision, Deviation
from .mission_types import (
    ContextSnapshot,
    Mission,
    ReflexionSummary,
    Step,
    StepStatus,
    StepSummary,
)


def _tail(items: Sequence, size: int) -> tuple:
    if size <= 0:
        return ()
    return tuple(items[-size:])


class ContextBuilder:
    """
    Builds context snapshots for a mission.

    Window sizes come from the OrchestrationConfig:
    - upcoming_window_size: pending steps after the current one
    - context_window_size: most recent decisions and deviations
    """

    def __init__(self, config: OrchestrationConfig):
        self.config = config

    def build(
        self,
        mission: Mission,
        current_step: Step,
        decisions: Sequence[Decision] = (),
        deviations: Sequence[Deviation] = (),
        last_reflexion: Optional[ReflexionSummary] = None,
    ) -> ContextSnapshot:
        """
        Build the snapshot for ``current_step``.

        Args:
            mission: The active mission
            current_step: Step about to be executed
            decisions: Engine decision log, chronological
            deviations: Engine deviation log, chronological
            last_reflexion: Most recent reflexion checkpoint, if any

        Returns:
            Frozen ContextSnapshot
        """
        ordered = mission.ordered_steps()
        completed = [s for s in ordered if s.status == StepStatus.COMPLETED]

        upcoming = [
            s for s in ordered
            if s.status == StepStatus.PENDING and s.step_id > current_step.step_id
        ]

        return ContextSnapshot(
            mission_id=mission.id,
            mission_title=mission.title,
            objectives=tuple(mission.objectives),
            mission_progress=mission.progress(),
            completed_steps=tuple(StepSummary.from_step(s, include_outcome=True) for s in completed),
            current_step=StepSummary.from_step(current_step),
            upcoming_steps=tuple(
                StepSummary.from_step(s) for s in upcoming[: self.config.upcoming_window_size]
            ),
            modified_files=self.collect_modified_files(completed),
            previous_decisions=_tail(decisions, self.config.context_window_size),
            known_problems=self.collect_known_problems(mission),
            deviation_history=_tail(deviations, self.config.context_window_size),
            success_rate=mission.success_rate(),
            working_directory=self.config.working_directory,
            available_tools=tuple(self.config.available_tools),
            last_reflexion=last_reflexion,
        )

    @staticmethod
    def collect_modified_files(completed: Sequence[Step]) -> tuple:
        """Union of files touched by completed steps, first-seen order."""
        seen: List[str] = []
        for step in completed:
            for entry in step.logbook_entries:
                for path in entry.files_modified:
                    if path not in seen:
                        seen.append(path)
        return tuple(seen)

    @staticmethod
    def collect_known_problems(mission: Mission) -> tuple:
        """Every problem ever logged in the mission, in step order."""
        problems: List[str] = []
        for step in mission.ordered_steps():
            problems.extend(step.problems())
        return tuple(problems)
