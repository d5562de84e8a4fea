"""
Night Orders - mission orchestration for bounded-context AI agents.

Small-context agents lose track of long objectives after a few turns.
Night Orders breaks a mission into dependency-ordered steps and hands
every step execution a freshly built snapshot of the whole mission:
objectives, completed work, the current step, what comes next, decisions
made so far and known problems.
"""

__version__ = "0.1.0"

from .config import OrchestrationConfig, get_config, load_config, reset_config
from .errors import (
    ExecutorFailure,
    NightOrdersError,
    NoActiveMissionError,
    ParseError,
    PersistenceError,
    UnknownRoleError,
)
from .decisions import Decision, Deviation, Severity
from .missions import (
    AgentRole,
    ContextSnapshot,
    JsonLogbook,
    LogbookEntry,
    MemoryLogbook,
    Mission,
    MissionStatus,
    Step,
    StepStatus,
    load_order_file,
    next_runnable_step,
)
from .missions.mission_orchestrator import MissionOrchestrator
from .steps import ExecutionOutcome, ExecutionResult, RoleExecutorRegistry
from .execution import AutonomousLoop, TickOutcome, classify_severity
from .notifications import EventBus, LoggingNotifier

__all__ = [
    "__version__",
    "OrchestrationConfig",
    "get_config",
    "load_config",
    "reset_config",
    "ExecutorFailure",
    "NightOrdersError",
    "NoActiveMissionError",
    "ParseError",
    "PersistenceError",
    "UnknownRoleError",
    "Decision",
    "Deviation",
    "Severity",
    "AgentRole",
    "ContextSnapshot",
    "JsonLogbook",
    "LogbookEntry",
    "MemoryLogbook",
    "Mission",
    "MissionStatus",
    "Step",
    "StepStatus",
    "load_order_file",
    "next_runnable_step",
    "MissionOrchestrator",
    "ExecutionOutcome",
    "ExecutionResult",
    "RoleExecutorRegistry",
    "AutonomousLoop",
    "TickOutcome",
    "classify_severity",
    "EventBus",
    "LoggingNotifier",
]
