"""
Mission Data Types for Night Orders.

Defines the passive entities of a mission: the Mission aggregate, its
ordered Steps, the append-only LogbookEntry audit trail, and the
ContextSnapshot that is rebuilt before every step execution so that a
bounded-context agent always sees the whole mission.
"""

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..decisions.decision_record import Decision, Deviation


class MissionStatus(str, Enum):
    """Lifecycle status of a mission."""
    PLANNING = "planning"
    EXECUTING = "executing"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    FAILED = "failed"


class StepStatus(str, Enum):
    """Lifecycle status of a single step."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_STEP_STATUSES = frozenset({StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.SKIPPED})
FINISHED_MISSION_STATUSES = frozenset({MissionStatus.COMPLETED, MissionStatus.FAILED})


class AgentRole(str, Enum):
    """
    Known agent roles ("watch officers").

    Steps carry their role as a plain string; unknown values are only
    rejected when the step is dispatched.
    """
    ROUTER = "router"
    CODER = "coder"
    REVIEWER = "reviewer"
    EXECUTOR = "executor"
    NARRATOR = "narrator"
    REFLEXION = "reflexion"


class LogbookResult(str, Enum):
    """Outcome recorded for a single execution attempt."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


def _role_value(role: Union[str, AgentRole]) -> str:
    return role.value if isinstance(role, AgentRole) else str(role)


def _as_step_ids(value: Any) -> Tuple[int, ...]:
    """A single id (``3`` or ``"10"``) or any iterable of ids."""
    if value is None:
        return ()
    if isinstance(value, (str, int)):
        return (int(value),)
    return tuple(int(v) for v in value)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (12.5 -> 13)."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class StepSummary:
    """Lightweight, immutable view of a step for context injection."""
    step_id: int
    description: str
    status: StepStatus
    assigned_role: str
    outcome: Optional[str] = None
    expected_outcome: Optional[str] = None

    @classmethod
    def from_step(cls, step: "Step", include_outcome: bool = False) -> "StepSummary":
        return cls(
            step_id=step.step_id,
            description=step.description,
            status=step.status,
            assigned_role=step.assigned_role,
            outcome=step.outcome() if include_outcome else None,
            expected_outcome=step.expected_outcome,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "description": self.description,
            "status": self.status.value,
            "assigned_role": self.assigned_role,
            "outcome": self.outcome,
            "expected_outcome": self.expected_outcome,
        }


@dataclass(frozen=True)
class ReflexionSummary:
    """
    Result of a reflexion checkpoint.

    Attributes:
        timestamp: When the checkpoint ran
        confidence: Mission success rate at the time (0-1)
        issues_found: Number of known problems
        critical_issues: Number of critical deviations recorded so far
        recommendations: Advisory next actions
        on_track: Whether the mission was judged healthy
    """
    timestamp: datetime
    confidence: float
    issues_found: int
    critical_issues: int
    recommendations: Tuple[str, ...] = field(default_factory=tuple)
    on_track: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "confidence": self.confidence,
            "issues_found": self.issues_found,
            "critical_issues": self.critical_issues,
            "recommendations": list(self.recommendations),
            "on_track": self.on_track,
        }


@dataclass(frozen=True)
class ContextSnapshot:
    """
    Full situational awareness handed to an agent before it acts.

    Rebuilt from scratch for every step execution and frozen inside the
    LogbookEntry of that attempt. ``built_at`` is excluded from equality so
    two snapshots of unchanged mission state compare equal.
    """
    # Mission awareness
    mission_id: str
    mission_title: str
    objectives: Tuple[str, ...]
    mission_progress: int

    # Timeline awareness
    completed_steps: Tuple[StepSummary, ...]
    current_step: StepSummary
    upcoming_steps: Tuple[StepSummary, ...]

    # Work awareness
    modified_files: Tuple[str, ...]
    previous_decisions: Tuple[Decision, ...]
    known_problems: Tuple[str, ...]
    deviation_history: Tuple[Deviation, ...]
    success_rate: float

    # Environment
    working_directory: str = ""
    available_tools: Tuple[str, ...] = field(default_factory=tuple)
    last_reflexion: Optional[ReflexionSummary] = None

    built_at: datetime = field(default_factory=datetime.utcnow, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "mission_id": self.mission_id,
            "mission_title": self.mission_title,
            "objectives": list(self.objectives),
            "mission_progress": self.mission_progress,
            "completed_steps": [s.to_dict() for s in self.completed_steps],
            "current_step": self.current_step.to_dict(),
            "upcoming_steps": [s.to_dict() for s in self.upcoming_steps],
            "modified_files": list(self.modified_files),
            "previous_decisions": [d.to_dict() for d in self.previous_decisions],
            "known_problems": list(self.known_problems),
            "deviation_history": [d.to_dict() for d in self.deviation_history],
            "success_rate": self.success_rate,
            "working_directory": self.working_directory,
            "available_tools": list(self.available_tools),
            "last_reflexion": self.last_reflexion.to_dict() if self.last_reflexion else None,
            "built_at": self.built_at.isoformat(),
        }

    def to_prompt(self) -> str:
        """
        Render the snapshot as a compact text block for a model prompt.
        """
        lines = [
            f"MISSION: {self.mission_title} ({self.mission_progress}% complete)",
            "OBJECTIVES:",
        ]
        lines.extend(f"  - {obj}" for obj in self.objectives)

        if self.completed_steps:
            lines.append("COMPLETED:")
            for s in self.completed_steps:
                outcome = f" -> {s.outcome}" if s.outcome else ""
                lines.append(f"  [{s.step_id}] {s.description}{outcome}")

        lines.append(
            f"CURRENT STEP [{self.current_step.step_id}] ({self.current_step.assigned_role}): "
            f"{self.current_step.description}"
        )
        if self.current_step.expected_outcome:
            lines.append(f"  Expected: {self.current_step.expected_outcome}")

        if self.upcoming_steps:
            lines.append("NEXT:")
            lines.extend(f"  [{s.step_id}] {s.description}" for s in self.upcoming_steps)

        if self.modified_files:
            lines.append("FILES TOUCHED: " + ", ".join(self.modified_files))
        if self.previous_decisions:
            lines.append("DECISIONS:")
            lines.extend(
                f"  - step {d.step_id}: {d.decision} ({d.rationale})" for d in self.previous_decisions
            )
        if self.known_problems:
            lines.append("KNOWN PROBLEMS:")
            lines.extend(f"  - {p}" for p in self.known_problems)
        if self.deviation_history:
            lines.append("DEVIATIONS:")
            lines.extend(
                f"  - [{d.severity.value}] step {d.step_id}: {d.actual_behavior}"
                for d in self.deviation_history
            )
        lines.append(f"SUCCESS RATE: {self.success_rate:.2f}")
        return "\n".join(lines)


@dataclass(frozen=True)
class LogbookEntry:
    """
    Immutable audit record of one execution attempt.

    Attributes:
        timestamp: When the attempt was recorded
        officer: Role that acted
        action: Human-readable description of what was done
        result: success / partial / failed
        context_snapshot: Context the officer was given for this attempt
        problems: Issues encountered
        files_modified: Resources changed by the attempt
        tools_used: Tools or APIs the officer called
        output_summary: Brief summary of the output
        needs_review: Whether the attempt should be shown to a human
    """
    timestamp: datetime
    officer: str
    action: str
    result: LogbookResult
    context_snapshot: ContextSnapshot
    problems: Tuple[str, ...] = field(default_factory=tuple)
    files_modified: Tuple[str, ...] = field(default_factory=tuple)
    tools_used: Tuple[str, ...] = field(default_factory=tuple)
    output_summary: Optional[str] = None
    needs_review: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "officer": self.officer,
            "action": self.action,
            "result": self.result.value,
            "problems": list(self.problems),
            "files_modified": list(self.files_modified),
            "tools_used": list(self.tools_used),
            "output_summary": self.output_summary,
            "needs_review": self.needs_review,
            "context_snapshot": self.context_snapshot.to_dict(),
        }


@dataclass
class Step:
    """
    A unit of delegated work within a mission.

    Only ``status``, ``retry_count``, the timestamps and ``logbook_entries``
    change after the mission is issued.

    Attributes:
        step_id: Unique within the mission; defines the natural ordering
        description: What to do
        assigned_role: Role whose executor runs the step
        dependencies: Step ids that must be completed first
        status: Current lifecycle status
        retry_count: Failed attempts so far
        logbook_entries: One entry per execution attempt, chronological
        expected_outcome: What success looks like
        start_time: When the latest attempt began
        completion_time: When the step completed
    """
    step_id: int
    description: str
    assigned_role: str
    dependencies: Tuple[int, ...] = field(default_factory=tuple)
    status: StepStatus = StepStatus.PENDING
    retry_count: int = 0
    logbook_entries: List[LogbookEntry] = field(default_factory=list)
    expected_outcome: Optional[str] = None
    start_time: Optional[datetime] = None
    completion_time: Optional[datetime] = None

    def __post_init__(self):
        self.step_id = int(self.step_id)
        self.assigned_role = _role_value(self.assigned_role)
        self.dependencies = _as_step_ids(self.dependencies)
        self.status = StepStatus(self.status)

    def is_terminal(self) -> bool:
        """Check if step is in a terminal state."""
        return self.status in TERMINAL_STEP_STATUSES

    def last_entry(self) -> Optional[LogbookEntry]:
        return self.logbook_entries[-1] if self.logbook_entries else None

    def outcome(self) -> Optional[str]:
        """Output summary of the most recent attempt."""
        entry = self.last_entry()
        return entry.output_summary if entry else None

    def problems(self) -> List[str]:
        """All problems logged across every attempt, in order."""
        found: List[str] = []
        for entry in self.logbook_entries:
            found.extend(entry.problems)
        return found

    def duration_seconds(self) -> Optional[float]:
        if self.start_time is None or self.completion_time is None:
            return None
        return (self.completion_time - self.start_time).total_seconds()

    def to_dict(self, include_entries: bool = True) -> Dict[str, Any]:
        data = {
            "step_id": self.step_id,
            "description": self.description,
            "assigned_role": self.assigned_role,
            "dependencies": list(self.dependencies),
            "status": self.status.value,
            "retry_count": self.retry_count,
            "expected_outcome": self.expected_outcome,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "completion_time": self.completion_time.isoformat() if self.completion_time else None,
        }
        if include_entries:
            data["logbook_entries"] = [e.to_dict() for e in self.logbook_entries]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Step":
        """
        Create a Step from parser output.

        Accepts the keys produced by the order parser as well as the
        shorter mission-file keys (``id``, ``role``, ``depends_on``,
        ``expected``).
        """
        def pick(*keys, default=None):
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            return default

        step_id = pick("step_id", "id", "taskId")
        if step_id is None:
            raise ValueError(f"Step is missing an id: {data!r}")

        return cls(
            step_id=int(step_id),
            description=str(pick("description", default="")),
            assigned_role=pick("assigned_role", "role", "assignedTo", default=AgentRole.EXECUTOR.value),
            dependencies=_as_step_ids(pick("dependencies", "depends_on", "dependsOn")),
            expected_outcome=pick("expected_outcome", "expected", "expectedOutcome"),
        )


@dataclass
class Mission:
    """
    One orchestrated objective composed of ordered steps.

    Attributes:
        title: Mission title
        objectives: High-level goals
        steps: Steps in declaration order
        id: Opaque identifier generated at creation
        status: Lifecycle status
        created_at: Creation time
        started_at: When the first step began
        completed_at: When the mission was completed or failed
        created_by: Who issued the orders
    """
    title: str
    objectives: List[str]
    steps: List[Step]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: MissionStatus = MissionStatus.PLANNING
    created_at: datetime = field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_by: str = "captain-agent"

    def get_step(self, step_id: int) -> Optional[Step]:
        for step in self.steps:
            if step.step_id == step_id:
                return step
        return None

    def steps_with_status(self, *statuses: StepStatus) -> List[Step]:
        return [s for s in self.steps if s.status in statuses]

    def ordered_steps(self) -> List[Step]:
        """Steps by ascending step id (the scheduling order)."""
        return sorted(self.steps, key=lambda s: s.step_id)

    def progress(self) -> int:
        """Percentage of steps completed, rounded half up."""
        total = len(self.steps)
        if total == 0:
            return 0
        completed = len(self.steps_with_status(StepStatus.COMPLETED))
        return round_half_up(completed / total * 100)

    def success_rate(self) -> float:
        """
        ``(completed - failed) / total`` clamped to [0, 1]; 1.0 for an empty mission.

        Not-yet-run steps count toward the total, so the rate is
        pessimistic early in a mission.
        """
        total = len(self.steps)
        if total == 0:
            return 1.0
        completed = len(self.steps_with_status(StepStatus.COMPLETED))
        failed = len(self.steps_with_status(StepStatus.FAILED))
        return min(1.0, max(0.0, (completed - failed) / total))

    def all_steps_terminal(self) -> bool:
        return all(s.is_terminal() for s in self.steps)

    def is_finished(self) -> bool:
        return self.status in FINISHED_MISSION_STATUSES

    def to_dict(self, include_entries: bool = False) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "objectives": list(self.objectives),
            "steps": [s.to_dict(include_entries=include_entries) for s in self.steps],
            "status": self.status.value,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass(frozen=True)
class MissionStatistics:
    """Aggregate numbers for a mission."""
    total_steps: int
    completed_steps: int
    failed_steps: int
    skipped_steps: int
    average_step_duration: float
    total_duration: float
    retry_count: int
    escalation_count: int
    success_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_steps": self.total_steps,
            "completed_steps": self.completed_steps,
            "failed_steps": self.failed_steps,
            "skipped_steps": self.skipped_steps,
            "average_step_duration": self.average_step_duration,
            "total_duration": self.total_duration,
            "retry_count": self.retry_count,
            "escalation_count": self.escalation_count,
            "success_rate": self.success_rate,
        }


@dataclass
class ParsedOrder:
    """Output of the external order parser: title, objectives and steps."""
    title: str
    objectives: List[str]
    steps: List[Step]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParsedOrder":
        return cls(
            title=str(data.get("title") or data.get("mission_title") or "Untitled mission"),
            objectives=[str(o) for o in (data.get("objectives") or [])],
            steps=coerce_steps(data.get("steps") or []),
        )


def coerce_steps(steps: Iterable[Union[Step, Dict[str, Any]]]) -> List[Step]:
    """Accept Step objects or parser dicts and return fresh pending Steps."""
    result: List[Step] = []
    for raw in steps:
        if isinstance(raw, Step):
            result.append(Step(
                step_id=raw.step_id,
                description=raw.description,
                assigned_role=raw.assigned_role,
                dependencies=raw.dependencies,
                expected_outcome=raw.expected_outcome,
            ))
        else:
            result.append(Step.from_dict(raw))
    return result
