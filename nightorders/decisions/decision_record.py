"""
Decision and Deviation records for Night Orders.

Decisions answer "why did we do X" for later steps; deviations record
where a step's actual behaviour diverged from what was expected. Both are
immutable once created and are injected (most recent first window) into
every context snapshot.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Severity(str, Enum):
    """
    Severity of a deviation, in increasing order of urgency.
    """
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __ge__(self, other):
        if isinstance(other, Severity):
            return self.rank >= other.rank
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, Severity):
            return self.rank > other.rank
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, Severity):
            return self.rank <= other.rank
        return NotImplemented

    def __lt__(self, other):
        if isinstance(other, Severity):
            return self.rank < other.rank
        return NotImplemented


_SEVERITY_RANK = {
    Severity.MINOR: 0,
    Severity.MODERATE: 1,
    Severity.MAJOR: 2,
    Severity.CRITICAL: 3,
}


@dataclass(frozen=True)
class Decision:
    """
    A choice made during execution.

    Attributes:
        timestamp: When the decision was made
        step_id: Step the decision concerns
        officer: Role that made the decision
        decision: What was decided
        rationale: Why
        alternatives: Other options that were considered
    """
    timestamp: datetime
    step_id: int
    officer: str
    decision: str
    rationale: str
    alternatives: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "step_id": self.step_id,
            "officer": self.officer,
            "decision": self.decision,
            "rationale": self.rationale,
            "alternatives": list(self.alternatives),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Decision":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            step_id=int(data["step_id"]),
            officer=data.get("officer", ""),
            decision=data.get("decision", ""),
            rationale=data.get("rationale", ""),
            alternatives=tuple(data.get("alternatives") or ()),
        )


@dataclass(frozen=True)
class Deviation:
    """
    Mismatch between expected and actual behaviour of a step.

    Attributes:
        timestamp: When the deviation was detected
        step_id: Step that deviated
        expected_behavior: What the step should have produced
        actual_behavior: What was observed (usually a reported problem)
        severity: Classified severity
        correction_taken: Corrective action, if any was recorded
    """
    timestamp: datetime
    step_id: int
    expected_behavior: str
    actual_behavior: str
    severity: Severity
    correction_taken: Optional[str] = None

    @property
    def is_critical(self) -> bool:
        return self.severity == Severity.CRITICAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "step_id": self.step_id,
            "expected_behavior": self.expected_behavior,
            "actual_behavior": self.actual_behavior,
            "severity": self.severity.value,
            "correction_taken": self.correction_taken,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Deviation":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            step_id=int(data["step_id"]),
            expected_behavior=data.get("expected_behavior", ""),
            actual_behavior=data.get("actual_behavior", ""),
            severity=Severity(data.get("severity", Severity.MINOR.value)),
            correction_taken=data.get("correction_taken"),
        )
