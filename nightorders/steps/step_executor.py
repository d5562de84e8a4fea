"""
Role dispatch for step execution.

The coordinator never decides what a step does. It hands the step and
its context to an executor callable. RoleExecutorRegistry is the usual
executor: a ``role -> handler`` map, so new roles are added by
registration rather than by editing the coordinator.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Union

from ..errors import UnknownRoleError
from ..missions.mission_types import AgentRole, ContextSnapshot, Step
from .step_types import ExecutionOutcome

logger = logging.getLogger(__name__)

OutcomeLike = Union[ExecutionOutcome, dict]
StepHandler = Callable[[Step, ContextSnapshot], OutcomeLike]


class RoleExecutorRegistry:
    """
    Dispatches a step to the handler registered for its role.

    Usage:
        registry = RoleExecutorRegistry()
        registry.register("coder", run_coder)
        outcome = registry(step, context)
    """

    def __init__(self, handlers: Optional[Dict[str, StepHandler]] = None):
        self._handlers: Dict[str, StepHandler] = {}
        for role, handler in (handlers or {}).items():
            self.register(role, handler)

    def register(self, role: Union[str, AgentRole], handler: StepHandler) -> None:
        """Register (or replace) the handler for a role."""
        key = role.value if isinstance(role, AgentRole) else str(role)
        if key in self._handlers:
            logger.info(f"[STEP] Replacing executor for role '{key}'")
        self._handlers[key] = handler

    def unregister(self, role: Union[str, AgentRole]) -> bool:
        key = role.value if isinstance(role, AgentRole) else str(role)
        return self._handlers.pop(key, None) is not None

    def roles(self) -> List[str]:
        return sorted(self._handlers)

    def has_role(self, role: str) -> bool:
        return role in self._handlers

    def __call__(self, step: Step, context: ContextSnapshot) -> OutcomeLike:
        handler = self._handlers.get(step.assigned_role)
        if handler is None:
            raise UnknownRoleError(step.assigned_role)
        return handler(step, context)


def dry_run_executor(step: Step, context: ContextSnapshot) -> ExecutionOutcome:
    """Report success for any step without doing anything."""
    return ExecutionOutcome(
        success=True,
        action=f"[dry-run] {step.description}",
        summary=f"Dry run of step {step.step_id} ({context.mission_progress}% before start)",
    )


def build_dry_run_registry(roles: Optional[Iterable[str]] = None) -> RoleExecutorRegistry:
    """Registry with ``dry_run_executor`` bound to every known role (or ``roles``)."""
    names = list(roles) if roles is not None else [r.value for r in AgentRole]
    return RoleExecutorRegistry({name: dry_run_executor for name in names})
