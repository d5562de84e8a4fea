"""
Step execution data types for Night Orders.

- ExecutionOutcome: what the external executor reports for one attempt
- ExecutionResult: what the coordinator returns to its caller
- StepExecutionRecord: the durable record forwarded to the logbook
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from ..decisions.decision_record import Deviation
from ..missions.mission_types import ContextSnapshot, LogbookEntry, Step


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def _as_flag(data: Dict[str, Any], *keys: str) -> bool:
    for key in keys:
        if key in data:
            value = data[key]
            if not isinstance(value, bool):
                raise ValueError(f"Executor outcome '{key}' must be a boolean, got {value!r}")
            return value
    return False


@dataclass(frozen=True)
class ExecutionOutcome:
    """
    Outcome reported by the step executor.

    Attributes:
        success: Whether the step achieved its goal
        action: Human-readable description of what was done
        summary: Brief summary of the output
        problems: Issues encountered
        files_modified: Resources changed
        tools_used: Tools or APIs called
        needs_review: Executor asks for a human to look at the result
    """
    success: bool
    action: str = ""
    summary: str = ""
    problems: Tuple[str, ...] = field(default_factory=tuple)
    files_modified: Tuple[str, ...] = field(default_factory=tuple)
    tools_used: Tuple[str, ...] = field(default_factory=tuple)
    needs_review: bool = False

    def __post_init__(self):
        object.__setattr__(self, "problems", _as_tuple(self.problems))
        object.__setattr__(self, "files_modified", _as_tuple(self.files_modified))
        object.__setattr__(self, "tools_used", _as_tuple(self.tools_used))

    @classmethod
    def failure(cls, action: str, problem: str) -> "ExecutionOutcome":
        """Outcome for an attempt that raised instead of reporting."""
        return cls(success=False, action=action, summary=problem, problems=(problem,))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionOutcome":
        """
        Create from the executor's dict shape.

        Both snake_case and camelCase keys are accepted.
        """
        if "success" not in data:
            raise ValueError("Executor outcome is missing 'success'")
        return cls(
            success=_as_flag(data, "success"),
            action=str(data.get("action") or ""),
            summary=str(data.get("summary") or data.get("outputSummary") or ""),
            problems=data.get("problems"),
            files_modified=data.get("files_modified", data.get("filesModified")),
            tools_used=data.get("tools_used", data.get("toolsUsed")),
            needs_review=_as_flag(data, "needs_review", "needsReview"),
        )

    @classmethod
    def coerce(cls, value: Union["ExecutionOutcome", Dict[str, Any]]) -> "ExecutionOutcome":
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            return cls.from_dict(value)
        raise TypeError(
            f"Executor must return ExecutionOutcome or dict, got {type(value).__name__}"
        )


@dataclass
class ExecutionResult:
    """
    Result of one ``execute_next_step`` call.

    ``idle`` is True when there was nothing to run; that is a normal
    signal, not an error, so ``error`` stays None in that case.
    """
    success: bool
    step: Optional[Step] = None
    context: Optional[ContextSnapshot] = None
    error: Optional[str] = None
    needs_review: bool = False
    entry: Optional[LogbookEntry] = None
    deviations: List[Deviation] = field(default_factory=list)
    idle: bool = False
    message: str = ""

    @classmethod
    def no_pending_steps(cls, message: str = "No pending steps") -> "ExecutionResult":
        return cls(success=False, idle=True, message=message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "step": self.step.to_dict(include_entries=False) if self.step else None,
            "context": self.context.to_dict() if self.context else None,
            "error": self.error,
            "needs_review": self.needs_review,
            "deviations": [d.to_dict() for d in self.deviations],
            "idle": self.idle,
            "message": self.message,
        }


@dataclass(frozen=True)
class StepExecutionRecord:
    """
    Durable record of one execution attempt, as handed to the logbook.

    Attributes:
        id: Generated execution id
        mission_id: Parent mission
        step_id: Step that was executed
        agent_role: Role that acted
        agent_context: Serialized context snapshot
        result: Output summary
        status: completed / failed / in_progress
        started_at: When the attempt began
        completed_at: When the attempt ended
        execution_time_ms: Wall-clock duration
        retry_count: Step retry count at the time of the attempt
        deviation_severity: Highest severity among reported problems
        deviation_description: Problems joined into one string
    """
    id: str
    mission_id: str
    step_id: int
    agent_role: str
    agent_context: Dict[str, Any]
    result: str
    status: str
    started_at: datetime
    completed_at: Optional[datetime]
    execution_time_ms: float
    retry_count: int
    deviation_severity: Optional[str] = None
    deviation_description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "mission_id": self.mission_id,
            "step_id": self.step_id,
            "agent_role": self.agent_role,
            "agent_context": self.agent_context,
            "result": self.result,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "execution_time_ms": self.execution_time_ms,
            "retry_count": self.retry_count,
            "deviation_severity": self.deviation_severity,
            "deviation_description": self.deviation_description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepExecutionRecord":
        completed_at = data.get("completed_at")
        return cls(
            id=data["id"],
            mission_id=data["mission_id"],
            step_id=int(data["step_id"]),
            agent_role=data.get("agent_role", ""),
            agent_context=data.get("agent_context") or {},
            result=data.get("result") or "",
            status=data.get("status", ""),
            started_at=datetime.fromisoformat(data["started_at"]),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
            execution_time_ms=float(data.get("execution_time_ms") or 0.0),
            retry_count=int(data.get("retry_count") or 0),
            deviation_severity=data.get("deviation_severity"),
            deviation_description=data.get("deviation_description"),
        )
