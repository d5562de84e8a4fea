"""
Step execution layer for Night Orders.

The coordinator delegates each step to an executor collaborator:
- ExecutionOutcome: what the executor reports
- RoleExecutorRegistry: role -> handler dispatch
- ExecutionResult / StepExecutionRecord: what the coordinator returns and persists
"""

from .step_types import (
    ExecutionOutcome,
    ExecutionResult,
    StepExecutionRecord,
)

from .step_executor import (
    RoleExecutorRegistry,
    StepHandler,
    build_dry_run_registry,
    dry_run_executor,
)

__all__ = [
    "ExecutionOutcome",
    "ExecutionResult",
    "StepExecutionRecord",
    "RoleExecutorRegistry",
    "StepHandler",
    "build_dry_run_registry",
    "dry_run_executor",
]
