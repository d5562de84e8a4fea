"""
Execution policies for Night Orders: deviation/escalation, reflexion
checkpoints, and the autonomous loop.
"""

from .escalation_policy import (
    DeviationPolicy,
    classify_severity,
    highest_severity,
)
from .reflexion import (
    ReflexionCheckpoint,
    ReflexionOutcome,
    build_awareness_summary,
)
from .autonomous_loop import (
    AutonomousLoop,
    LoopState,
    TickOutcome,
)

__all__ = [
    "DeviationPolicy",
    "classify_severity",
    "highest_severity",
    "ReflexionCheckpoint",
    "ReflexionOutcome",
    "build_awareness_summary",
    "AutonomousLoop",
    "LoopState",
    "TickOutcome",
]
