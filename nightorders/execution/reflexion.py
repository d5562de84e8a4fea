"""
Reflexion checkpoint for Night Orders.

A lightweight sanity check on mission health run after successful steps.
It only annotates the mission (a Deviation and a Decision when the mission
looks off track); it never blocks progress.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..decisions.decision_record import Decision, Deviation, Severity
from ..missions.mission_types import (
    AgentRole,
    ContextSnapshot,
    Mission,
    ReflexionSummary,
    StepStatus,
    round_half_up,
)
from .escalation_policy import classify_severity

logger = logging.getLogger(__name__)

ON_TRACK_SUCCESS_RATE = 0.7

DECISION_CONTINUE = "continue"
DECISION_MONITOR = "monitor closely"


@dataclass
class ReflexionOutcome:
    """What a checkpoint produced."""
    summary: ReflexionSummary
    deviation: Optional[Deviation] = None
    decision: Optional[Decision] = None

    @property
    def on_track(self) -> bool:
        return self.summary.on_track


class ReflexionCheckpoint:
    """
    Judges whether the mission is on track.

    On track iff ``success_rate > 0.7`` and no problems are known. Otherwise
    a "Low success rate" deviation is recorded together with a decision to
    ``continue`` (no known problems, the low rate is just the early-mission
    signal) or to ``monitor closely`` (problems have been reported).
    """

    def __init__(self, threshold: float = ON_TRACK_SUCCESS_RATE):
        self.threshold = threshold

    def is_on_track(self, context: ContextSnapshot) -> bool:
        return context.success_rate > self.threshold and not context.known_problems

    def run(
        self,
        context: ContextSnapshot,
        critical_issues: int = 0,
    ) -> ReflexionOutcome:
        """
        Evaluate mission health from a freshly built context.

        Args:
            context: Snapshot taken after the step completed
            critical_issues: Critical deviations recorded so far

        Returns:
            ReflexionOutcome with the summary and any annotations
        """
        now = datetime.utcnow()
        step_id = context.current_step.step_id
        on_track = self.is_on_track(context)

        if on_track:
            summary = ReflexionSummary(
                timestamp=now,
                confidence=context.success_rate,
                issues_found=0,
                critical_issues=critical_issues,
                recommendations=(DECISION_CONTINUE,),
                on_track=True,
            )
            logger.debug(f"[REFLEXION] Step {step_id}: on track ({context.success_rate:.2f})")
            return ReflexionOutcome(summary=summary)

        rate_pct = round_half_up(context.success_rate * 100)
        message = f"Low success rate: {rate_pct}%"
        deviation = Deviation(
            timestamp=now,
            step_id=step_id,
            expected_behavior=f"Success rate above {round_half_up(self.threshold * 100)}% with no known problems",
            actual_behavior=message,
            severity=classify_severity(message),
        )

        verdict = DECISION_MONITOR if context.known_problems else DECISION_CONTINUE
        rationale = (
            f"{len(context.known_problems)} known problem(s) at {rate_pct}% success"
            if context.known_problems
            else f"No known problems; {rate_pct}% reflects steps not yet run"
        )
        decision = Decision(
            timestamp=now,
            step_id=step_id,
            officer=AgentRole.REFLEXION.value,
            decision=verdict,
            rationale=rationale,
            alternatives=(DECISION_CONTINUE, DECISION_MONITOR),
        )

        summary = ReflexionSummary(
            timestamp=now,
            confidence=context.success_rate,
            issues_found=len(context.known_problems),
            critical_issues=critical_issues,
            recommendations=(verdict,),
            on_track=False,
        )
        logger.info(f"[REFLEXION] Step {step_id}: {message}, decision={verdict}")
        return ReflexionOutcome(summary=summary, deviation=deviation, decision=decision)


def count_critical(deviations: List[Deviation]) -> int:
    return sum(1 for d in deviations if d.severity == Severity.CRITICAL)


def build_awareness_summary(
    mission: Mission,
    step_id: int,
    upcoming_window: int = 3,
) -> Dict[str, Any]:
    """
    Continuous-awareness payload after a step: what we just did, where we
    are, and what comes next.
    """
    step = mission.get_step(step_id)
    ordered = mission.ordered_steps()
    upcoming = [s for s in ordered if s.status == StepStatus.PENDING][:upcoming_window]
    completed = mission.steps_with_status(StepStatus.COMPLETED)

    return {
        "mission_id": mission.id,
        "mission_title": mission.title,
        "just_completed": {
            "step_id": step_id,
            "description": step.description if step else "",
            "outcome": step.outcome() if step else None,
        },
        "where_we_are": {
            "progress": mission.progress(),
            "completed": len(completed),
            "total": len(mission.steps),
            "success_rate": mission.success_rate(),
        },
        "whats_next": [
            {"step_id": s.step_id, "description": s.description, "assigned_role": s.assigned_role}
            for s in upcoming
        ],
    }
