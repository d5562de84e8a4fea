"""
Deviation and escalation policy for Night Orders.

Classifies reported problems by keyword, turns each one into a Deviation
record, and escalates critical deviations to a human operator.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from ..decisions.decision_record import Deviation, Severity
from ..missions.mission_types import Mission, Step
from ..notifications.notifier import EVENT_ESCALATION, Notifier, safe_emit

logger = logging.getLogger(__name__)

# Checked in order; first match wins
SEVERITY_KEYWORDS: Tuple[Tuple[Severity, Tuple[str, ...]], ...] = (
    (Severity.CRITICAL, ("critical", "crash", "data loss", "security")),
    (Severity.MAJOR, ("error", "fail", "broken", "corrupt")),
    (Severity.MODERATE, ("warn", "deprecat", "slow")),
)


def classify_severity(problem: str) -> Severity:
    """
    Classify a problem description by keyword (case-insensitive).

    critical|crash|data loss|security -> critical
    error|fail|broken|corrupt         -> major
    warn|deprecat|slow                -> moderate
    anything else                     -> minor
    """
    lower = problem.lower()
    for severity, keywords in SEVERITY_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return severity
    return Severity.MINOR


def highest_severity(problems: Iterable[str]) -> Optional[Severity]:
    """Most urgent severity among ``problems``, or None when there are none."""
    severities = [classify_severity(p) for p in problems]
    return max(severities) if severities else None


class DeviationPolicy:
    """
    Turns problems into deviations and escalates critical ones.

    Escalation is fire-and-forget: the policy never waits for, or fails on,
    the notifier.
    """

    def __init__(self, notifier: Optional[Notifier] = None, auto_escalate: bool = True):
        self.notifier = notifier
        self.auto_escalate = auto_escalate

    def assess(self, step: Step, problems: Sequence[str]) -> List[Deviation]:
        """
        Create one Deviation per problem reported for ``step``.

        Args:
            step: Step the problems were reported on
            problems: Problem descriptions, in reported order

        Returns:
            Deviations in the same order
        """
        deviations = []
        for problem in problems:
            deviation = Deviation(
                timestamp=datetime.utcnow(),
                step_id=step.step_id,
                expected_behavior=step.expected_outcome or "Success",
                actual_behavior=problem,
                severity=classify_severity(problem),
            )
            deviations.append(deviation)
            logger.warning(
                f"[DEVIATION] Step {step.step_id} ({deviation.severity.value}): {problem}"
            )
        return deviations

    def should_escalate(self, deviation: Deviation) -> bool:
        return self.auto_escalate and deviation.is_critical

    def escalate(self, mission: Mission, deviation: Deviation) -> bool:
        """
        Notify the operator about ``deviation`` if policy says so.

        Returns:
            True when an escalation event was emitted
        """
        if not self.should_escalate(deviation):
            return False

        logger.error(
            f"[DEVIATION] CRITICAL on step {deviation.step_id} of '{mission.title}', escalating"
        )
        safe_emit(self.notifier, EVENT_ESCALATION, {
            "mission_id": mission.id,
            "mission_title": mission.title,
            "step_id": deviation.step_id,
            "severity": deviation.severity.value,
            "problem": deviation.actual_behavior,
            "expected": deviation.expected_behavior,
        })
        return True
