"""
Mission Orchestrator for Night Orders.

The execution coordinator. Owns the single current Mission and is the
only place it is mutated. Each ``execute_next_step`` call is one bounded
unit of work:

    pick step -> mark in-progress -> build context -> delegate to executor
    -> record logbook entry -> apply retry policy -> assess deviations
    -> optional reflexion checkpoint

Step-level failures are recovered here (retried or terminalized) and
reported through ExecutionResult; only structural misuse such as running
with no active mission raises.
"""

import logging
import threading
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..config import OrchestrationConfig, get_config
from ..decisions.decision_record import Decision, Deviation, Severity
from ..errors import ExecutorFailure, NightOrdersError, NoActiveMissionError, UnknownRoleError
from ..execution.escalation_policy import DeviationPolicy, highest_severity
from ..execution.reflexion import ReflexionCheckpoint, count_critical
from ..notifications.notifier import Notifier
from ..steps.step_types import ExecutionOutcome, ExecutionResult, StepExecutionRecord
from .context_builder import ContextBuilder
from .mission_store import Logbook
from .mission_types import (
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
    coerce_steps,
)
from .scheduler import next_runnable_step

logger = logging.getLogger(__name__)

StepExecutor = Callable[[Step, ContextSnapshot], Union[ExecutionOutcome, Dict[str, Any]]]
OrderParser = Callable[[str], Union[ParsedOrder, Dict[str, Any], Tuple[str, List[str], List[Any]]]]


class MissionOrchestrator:
    """
    Coordinates one mission at a time.

    Issuing a new mission discards the previous one together with its
    decision and deviation logs. All mutation happens under a re-entrant
    lock, so the autonomous loop and manual callers never interleave.

    Usage:
        orchestrator = MissionOrchestrator(executor=registry, logbook=JsonLogbook("logs"))
        orchestrator.issue_orders("Add dark mode", ["Theme toggle"], steps)
        result = orchestrator.execute_next_step()
    """

    def __init__(
        self,
        executor: StepExecutor,
        logbook: Optional[Logbook] = None,
        notifier: Optional[Notifier] = None,
        config: Optional[OrchestrationConfig] = None,
        parser: Optional[OrderParser] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            executor: Callable ``(step, context) -> ExecutionOutcome | dict``
            logbook: Durable persistence collaborator (optional)
            notifier: Event collaborator for escalations (optional)
            config: Orchestration settings (defaults to the global config)
            parser: ``ParseOrder`` collaborator for ``issue_orders_from_text``
        """
        self.executor = executor
        self.logbook = logbook
        self.notifier = notifier
        self.parser = parser
        self._config = config or get_config()

        self._mission: Optional[Mission] = None
        self._decisions: List[Decision] = []
        self._deviations: List[Deviation] = []
        self._last_reflexion: Optional[ReflexionSummary] = None
        self._lock = threading.RLock()

        self._context_builder = ContextBuilder(self._config)
        self._deviation_policy = DeviationPolicy(notifier, self._config.auto_escalate)
        self._reflexion = ReflexionCheckpoint()
        self.persistence_failures = 0

        logger.info(
            f"[MISSION] Orchestrator initialized (max_retries={self._config.max_retries}, "
            f"auto_escalate={self._config.auto_escalate}, reflexion={self._config.enable_reflexion})"
        )

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> OrchestrationConfig:
        return self._config

    @property
    def current_mission(self) -> Optional[Mission]:
        return self._mission

    @property
    def has_active_mission(self) -> bool:
        return self._mission is not None

    @property
    def decisions(self) -> Tuple[Decision, ...]:
        return tuple(self._decisions)

    @property
    def deviations(self) -> Tuple[Deviation, ...]:
        return tuple(self._deviations)

    @property
    def last_reflexion(self) -> Optional[ReflexionSummary]:
        return self._last_reflexion

    def update_config(self, **overrides: Any) -> OrchestrationConfig:
        """Replace configuration values; takes effect on the next step."""
        with self._lock:
            self._config = self._config.with_overrides(**overrides)
            self._context_builder = ContextBuilder(self._config)
            self._deviation_policy.auto_escalate = self._config.auto_escalate
        logger.info(f"[MISSION] Config updated: {overrides}")
        return self._config

    def _require_mission(self) -> Mission:
        if self._mission is None:
            raise NoActiveMissionError()
        return self._mission

    # ------------------------------------------------------------------
    # Mission lifecycle
    # ------------------------------------------------------------------

    def issue_orders(
        self,
        title: str,
        objectives: Sequence[str],
        steps: Iterable[Union[Step, Dict[str, Any]]],
    ) -> Mission:
        """
        Start a new mission, replacing the current one.

        Args:
            title: Mission title
            objectives: High-level goals
            steps: Steps (or parser dicts) in declaration order

        Returns:
            The new Mission, in ``planning`` status

        Raises:
            ValueError: If two steps share an id
        """
        new_steps = coerce_steps(steps)
        ids = [s.step_id for s in new_steps]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate step ids: {duplicates}")

        with self._lock:
            previous = self._mission
            if previous is not None and not previous.is_finished():
                logger.warning(
                    f"[MISSION] Replacing unfinished mission '{previous.title}' "
                    f"({previous.status.value})"
                )

            mission = Mission(title=title, objectives=list(objectives), steps=new_steps)
            self._mission = mission
            self._decisions = []
            self._deviations = []
            self._last_reflexion = None

        self._persist("save_mission", mission)
        logger.info(
            f"[MISSION] Orders issued: '{title}' "
            f"({len(mission.objectives)} objective(s), {len(new_steps)} step(s))"
        )
        return mission

    def issue_orders_from_text(self, request_text: str, parser: Optional[OrderParser] = None) -> Mission:
        """
        Parse a natural-language request with the order parser, then issue it.

        Raises:
            NightOrdersError: If no parser is configured
            ParseError: Propagated from the parser
        """
        parse = parser or self.parser
        if parse is None:
            raise NightOrdersError("No order parser configured")

        parsed = parse(request_text)
        if isinstance(parsed, dict):
            parsed = ParsedOrder.from_dict(parsed)
        elif isinstance(parsed, tuple):
            title, objectives, steps = parsed
            parsed = ParsedOrder(title=title, objectives=list(objectives), steps=coerce_steps(steps))

        return self.issue_orders(parsed.title, parsed.objectives, parsed.steps)

    def complete_mission(self, success: bool = True) -> Mission:
        """Mark the current mission completed (or failed)."""
        with self._lock:
            mission = self._require_mission()
            mission.status = MissionStatus.COMPLETED if success else MissionStatus.FAILED
            mission.completed_at = datetime.utcnow()

        self._persist("update_mission_status", mission.id, mission.status, mission.completed_at)
        logger.info(
            f"[MISSION] '{mission.title}' {'COMPLETED' if success else 'FAILED'}"
        )
        return mission

    def abort_mission(self, reason: str = "Aborted by operator") -> Mission:
        """Stop the mission for good; it is recorded as failed."""
        with self._lock:
            mission = self._require_mission()
            current = next_runnable_step(mission)
            self._decisions.append(Decision(
                timestamp=datetime.utcnow(),
                step_id=current.step_id if current else -1,
                officer="captain",
                decision="abort mission",
                rationale=reason,
            ))
            logger.warning(f"[MISSION] Aborting '{mission.title}': {reason}")
            return self.complete_mission(success=False)

    def finalize(self) -> MissionStatus:
        """
        Settle the mission once nothing is runnable.

        Every step terminal -> completed (no failed steps) or failed.
        Otherwise the remaining pending steps can never run -> blocked.
        A mission that still has runnable work is left untouched.
        """
        with self._lock:
            mission = self._require_mission()
            if mission.is_finished():
                return mission.status

            if mission.all_steps_terminal():
                failed = mission.steps_with_status(StepStatus.FAILED)
                return self.complete_mission(success=not failed).status

            if next_runnable_step(mission) is None:
                mission.status = MissionStatus.BLOCKED
                self._persist("update_mission_status", mission.id, mission.status, None)
                logger.warning(f"[MISSION] '{mission.title}' is blocked: no runnable steps remain")

            return mission.status

    # ------------------------------------------------------------------
    # Scheduling and context
    # ------------------------------------------------------------------

    def next_runnable_step(self) -> Optional[Step]:
        """Next step the scheduler would run, or None."""
        mission = self._require_mission()
        if mission.is_finished():
            return None
        return next_runnable_step(mission)

    def build_context(self, step: Step) -> ContextSnapshot:
        """
        Build the context snapshot for ``step`` of the current mission.

        Raises:
            NoActiveMissionError: If no mission is active
        """
        mission = self._require_mission()
        return self._context_builder.build(
            mission,
            step,
            decisions=self._decisions,
            deviations=self._deviations,
            last_reflexion=self._last_reflexion,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute_next_step(self) -> ExecutionResult:
        """
        Execute the next runnable step.

        Returns:
            ExecutionResult; ``idle`` is set when there was nothing to run

        Raises:
            NoActiveMissionError: If no mission is active
        """
        with self._lock:
            mission = self._require_mission()
            if mission.is_finished():
                return ExecutionResult.no_pending_steps(f"Mission already {mission.status.value}")

            step = next_runnable_step(mission)
            if step is None:
                logger.info(f"[MISSION] No pending steps in '{mission.title}'")
                return ExecutionResult.no_pending_steps()

            started_at = datetime.utcnow()
            if mission.status in (MissionStatus.PLANNING, MissionStatus.BLOCKED):
                mission.status = MissionStatus.EXECUTING
                if mission.started_at is None:
                    mission.started_at = started_at
                self._persist("update_mission_status", mission.id, mission.status, None)

            step.status = StepStatus.IN_PROGRESS
            step.start_time = started_at
            context = self.build_context(step)

            logger.info(
                f"[STEP] Executing step {step.step_id} ({step.assigned_role}): {step.description} "
                f"[attempt {step.retry_count + 1}/{self._config.max_retries}]"
            )

            clock = time.monotonic()
            outcome, error, terminal = self._dispatch(step, context)
            elapsed_ms = (time.monotonic() - clock) * 1000.0

            return self._record_outcome(
                mission, step, context, outcome, error, terminal, started_at, elapsed_ms
            )

    def _dispatch(
        self,
        step: Step,
        context: ContextSnapshot,
    ) -> Tuple[ExecutionOutcome, Optional[str], bool]:
        """
        Call the executor.

        Returns:
            (outcome, error message or None, terminal) where ``terminal`` means
            the failure cannot be fixed by retrying
        """
        try:
            outcome = ExecutionOutcome.coerce(self.executor(step, context))
        except UnknownRoleError as e:
            logger.error(f"[STEP] Step {step.step_id}: {e}")
            return ExecutionOutcome.failure(f"Dispatch to '{step.assigned_role}'", str(e)), str(e), True
        except Exception as e:
            failure = ExecutorFailure(step.step_id, e)
            logger.warning(f"[STEP] {failure}")
            message = str(e) or type(e).__name__
            return ExecutionOutcome.failure(f"Execute step {step.step_id}", message), message, False

        if outcome.success:
            return outcome, None, False

        error = outcome.summary or (outcome.problems[0] if outcome.problems else "Step reported failure")
        return outcome, error, False

    def _record_outcome(
        self,
        mission: Mission,
        step: Step,
        context: ContextSnapshot,
        outcome: ExecutionOutcome,
        error: Optional[str],
        terminal: bool,
        started_at: datetime,
        elapsed_ms: float,
    ) -> ExecutionResult:
        now = datetime.utcnow()
        problems = list(outcome.problems)
        worst = highest_severity(problems)

        if outcome.success:
            next_status = StepStatus.COMPLETED
            result = LogbookResult.PARTIAL if problems else LogbookResult.SUCCESS
        else:
            attempts = step.retry_count + 1
            exhausted = terminal or attempts >= self._config.max_retries
            next_status = StepStatus.FAILED if exhausted else StepStatus.PENDING
            result = LogbookResult.FAILED

        needs_review = (
            outcome.needs_review
            or next_status == StepStatus.FAILED
            or worst == Severity.CRITICAL
        )

        entry = LogbookEntry(
            timestamp=now,
            officer=step.assigned_role,
            action=outcome.action or step.description,
            result=result,
            context_snapshot=context,
            problems=tuple(problems),
            files_modified=outcome.files_modified,
            tools_used=outcome.tools_used,
            output_summary=outcome.summary or None,
            needs_review=needs_review,
        )
        step.logbook_entries.append(entry)

        self._persist("save_step_execution", StepExecutionRecord(
            id=str(uuid.uuid4()),
            mission_id=mission.id,
            step_id=step.step_id,
            agent_role=step.assigned_role,
            agent_context=context.to_dict(),
            result=outcome.summary,
            status="completed" if outcome.success else "failed",
            started_at=started_at,
            completed_at=now,
            execution_time_ms=elapsed_ms,
            retry_count=step.retry_count,
            deviation_severity=worst.value if worst else None,
            deviation_description="; ".join(problems) if problems else None,
        ))

        if outcome.success:
            step.status = StepStatus.COMPLETED
            step.completion_time = now
            logger.info(
                f"[STEP] Step {step.step_id} {result.value} by {step.assigned_role}: {entry.action}"
            )
        else:
            step.retry_count += 1
            step.status = next_status
            if next_status == StepStatus.FAILED:
                logger.warning(
                    f"[STEP] Step {step.step_id} failed permanently after "
                    f"{step.retry_count} attempt(s): {error}"
                )
            else:
                logger.info(
                    f"[STEP] Step {step.step_id} failed (attempt {step.retry_count}/"
                    f"{self._config.max_retries}), will retry: {error}"
                )

        deviations = self._deviation_policy.assess(step, problems)
        self._deviations.extend(deviations)
        for deviation in deviations:
            self._deviation_policy.escalate(mission, deviation)

        if outcome.success and self._config.enable_reflexion:
            self._run_reflexion(mission, step)

        return ExecutionResult(
            success=outcome.success,
            step=step,
            context=context,
            error=error,
            needs_review=needs_review,
            entry=entry,
            deviations=deviations,
            message=outcome.summary,
        )

    def _run_reflexion(self, mission: Mission, step: Step) -> None:
        context = self.build_context(step)
        outcome = self._reflexion.run(context, critical_issues=count_critical(self._deviations))
        self._last_reflexion = outcome.summary

        if outcome.deviation is not None:
            self._deviations.append(outcome.deviation)
            self._deviation_policy.escalate(mission, outcome.deviation)
        if outcome.decision is not None:
            self._decisions.append(outcome.decision)

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    def record_decision(
        self,
        step_id: int,
        officer: str,
        decision: str,
        rationale: str,
        alternatives: Sequence[str] = (),
    ) -> Decision:
        """Record a choice made during execution for later context."""
        with self._lock:
            self._require_mission()
            record = Decision(
                timestamp=datetime.utcnow(),
                step_id=step_id,
                officer=officer,
                decision=decision,
                rationale=rationale,
                alternatives=tuple(alternatives),
            )
            self._decisions.append(record)
        logger.info(f"[MISSION] Decision recorded for step {step_id}: {decision}")
        return record

    def skip_step(self, step_id: int, reason: str = "Skipped by operator", officer: str = "captain") -> Step:
        """
        Skip a pending or failed step.

        Dependents of a skipped step never become runnable.

        Raises:
            KeyError: If the step does not exist
            ValueError: If the step is not pending or failed
        """
        with self._lock:
            mission = self._require_mission()
            step = mission.get_step(step_id)
            if step is None:
                raise KeyError(f"Step {step_id} not found")
            if step.status not in (StepStatus.PENDING, StepStatus.FAILED):
                raise ValueError(f"Cannot skip step {step_id} in status '{step.status.value}'")

            step.status = StepStatus.SKIPPED
            self.record_decision(step_id, officer, "skip step", reason)
        logger.info(f"[STEP] Step {step_id} skipped: {reason}")
        return step

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_statistics(self) -> Optional[MissionStatistics]:
        """Aggregate numbers for the current mission, or None."""
        mission = self._mission
        if mission is None:
            return None

        steps = mission.steps
        completed = mission.steps_with_status(StepStatus.COMPLETED)
        durations = [d for d in (s.duration_seconds() for s in completed) if d is not None]
        end = mission.completed_at or datetime.utcnow()

        return MissionStatistics(
            total_steps=len(steps),
            completed_steps=len(completed),
            failed_steps=len(mission.steps_with_status(StepStatus.FAILED)),
            skipped_steps=len(mission.steps_with_status(StepStatus.SKIPPED)),
            average_step_duration=sum(durations) / len(durations) if durations else 0.0,
            total_duration=(end - mission.created_at).total_seconds(),
            retry_count=sum(s.retry_count for s in steps),
            escalation_count=sum(
                1 for s in steps for e in s.logbook_entries if e.needs_review
            ),
            success_rate=len(completed) / len(steps) if steps else 0.0,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _persist(self, method: str, *args: Any) -> bool:
        """Best-effort logbook call; failures are logged and counted."""
        if self.logbook is None:
            return False
        try:
            getattr(self.logbook, method)(*args)
            return True
        except Exception as e:
            self.persistence_failures += 1
            logger.warning(f"[LOGBOOK] {method} failed, continuing in memory: {e}")
            return False
