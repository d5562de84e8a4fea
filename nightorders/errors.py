"""
Error taxonomy for Night Orders.

Only structural misuse (e.g. executing with no active mission) propagates
to callers. Step-level failures are recovered inside the coordinator and
reported through ExecutionResult instead of exceptions.
"""

from typing import Optional


class NightOrdersError(Exception):
    """Base class for all Night Orders errors."""


class NoActiveMissionError(NightOrdersError):
    """Raised when an operation needs a current mission and none exists."""

    def __init__(self, message: str = "No active mission"):
        super().__init__(message)


class UnknownRoleError(NightOrdersError):
    """
    Raised when a step's assigned role has no registered executor.

    Fatal to the step only: the coordinator marks it failed without retry,
    since retrying cannot supply a missing implementation.
    """

    def __init__(self, role: str):
        self.role = role
        super().__init__(f"No executor registered for role '{role}'")


class ParseError(NightOrdersError):
    """Raised when an order (text or mission file) cannot be parsed."""


class ExecutorFailure(NightOrdersError):
    """Wraps an exception raised by the external step executor."""

    def __init__(self, step_id: int, cause: BaseException):
        self.step_id = step_id
        self.cause = cause
        super().__init__(f"Executor failed on step {step_id}: {cause}")


class PersistenceError(NightOrdersError):
    """Raised by logbook implementations when a write cannot be completed."""

    def __init__(self, message: str, mission_id: Optional[str] = None):
        self.mission_id = mission_id
        super().__init__(message)
