"""
Mission model for Night Orders.

Entities, dependency scheduling, context building and logbook
persistence. The execution coordinator that drives these lives in
``mission_orchestrator`` and is exported from the top-level package.
"""

from .mission_types import (
    AgentRole,
    ContextSnapshot,
    LogbookEntry,
    LogbookResult,
    Mission,
    MissionStatistics,
    MissionStatus,
    ParsedOrder,
    ReflexionSummary,
    Step,
    StepStatus,
    StepSummary,
)
from .scheduler import (
    blocked_steps,
    dependencies_met,
    next_runnable_step,
    planned_order,
)
from .context_builder import ContextBuilder
from .mission_store import JsonLogbook, Logbook, MemoryLogbook
from .order_file import load_order_file, parse_order_data

__all__ = [
    "AgentRole",
    "ContextSnapshot",
    "LogbookEntry",
    "LogbookResult",
    "Mission",
    "MissionStatistics",
    "MissionStatus",
    "ParsedOrder",
    "ReflexionSummary",
    "Step",
    "StepStatus",
    "StepSummary",
    "blocked_steps",
    "dependencies_met",
    "next_runnable_step",
    "planned_order",
    "ContextBuilder",
    "JsonLogbook",
    "Logbook",
    "MemoryLogbook",
    "load_order_file",
    "parse_order_data",
]
