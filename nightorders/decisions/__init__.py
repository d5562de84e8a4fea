"""
Decision accountability records for Night Orders.

- Decision: a choice made during execution ("why did we do X")
- Deviation: expected vs. actual behaviour, tagged with a Severity
"""

from .decision_record import (
    Decision,
    Deviation,
    Severity,
)

__all__ = [
    "Decision",
    "Deviation",
    "Severity",
]
