"""
Autonomous loop controller for Night Orders.

Executes steps unattended on a periodic timer. Each tick asks the
orchestrator for one unit of work. Ticks fire on their own timer threads,
so a slow executor call can outlive the next tick; the ``is_executing``
guard (a single-slot non-blocking lock) makes the late tick skip instead
of running a second step against the same mission.
"""

import logging
import threading
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..missions.mission_types import MissionStatus
from ..notifications.notifier import (
    EVENT_AUTONOMOUS_PAUSED,
    EVENT_AUTONOMOUS_STARTED,
    EVENT_AUTONOMOUS_STOPPED,
    EVENT_MISSION_BLOCKED,
    EVENT_MISSION_COMPLETED,
    EVENT_MISSION_FAILED,
    EVENT_REFLEXION_SUMMARY,
    Notifier,
    safe_emit,
)
from .reflexion import build_awareness_summary

if TYPE_CHECKING:
    from ..missions.mission_orchestrator import MissionOrchestrator

logger = logging.getLogger(__name__)

_SETTLED_EVENTS = {
    MissionStatus.COMPLETED: EVENT_MISSION_COMPLETED,
    MissionStatus.FAILED: EVENT_MISSION_FAILED,
    MissionStatus.BLOCKED: EVENT_MISSION_BLOCKED,
}


class LoopState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class TickOutcome(str, Enum):
    """What a single tick did."""
    SKIPPED = "skipped"      # previous tick still executing
    STOPPED = "stopped"      # loop not running (late timer) or no mission
    FINISHED = "finished"    # nothing runnable; loop stopped and mission settled
    EXECUTED = "executed"    # one step succeeded
    FAILED = "failed"        # one step failed, loop keeps ticking
    PAUSED = "paused"        # one step failed, loop stopped for review


class AutonomousLoop:
    """
    Timer-driven execution of a mission.

    Usage:
        loop = AutonomousLoop(orchestrator, notifier=bus)
        loop.start()
        loop.wait(timeout=600)

    Args:
        orchestrator: Coordinator that owns the mission
        notifier: Receives started/stopped/paused/summary/completion events
        interval_ms: Tick period; defaults to the orchestrator config
        pause_on_error: Stop on first failure; defaults to the orchestrator config
    """

    def __init__(
        self,
        orchestrator: "MissionOrchestrator",
        notifier: Optional[Notifier] = None,
        interval_ms: Optional[int] = None,
        pause_on_error: Optional[bool] = None,
    ):
        if interval_ms is not None and interval_ms <= 0:
            raise ValueError(f"interval_ms must be > 0, got {interval_ms}")

        self.orchestrator = orchestrator
        self.notifier = notifier if notifier is not None else orchestrator.notifier
        self._interval_ms = interval_ms
        self._pause_on_error = pause_on_error

        self._state = LoopState.STOPPED
        self._timer: Optional[threading.Timer] = None
        self._state_lock = threading.Lock()
        self._executing = threading.Lock()
        self._stopped = threading.Event()
        self._stopped.set()
        self.ticks_executed = 0
        self.ticks_skipped = 0

    # ------------------------------------------------------------------

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == LoopState.RUNNING

    @property
    def is_executing(self) -> bool:
        return self._executing.locked()

    @property
    def interval_seconds(self) -> float:
        if self._interval_ms is not None:
            return self._interval_ms / 1000.0
        return self.orchestrator.config.autonomous_interval_seconds

    @property
    def pause_on_error(self) -> bool:
        if self._pause_on_error is not None:
            return self._pause_on_error
        return self.orchestrator.config.pause_on_error

    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        Begin ticking.

        Returns:
            False (no-op) if already running or no mission is active
        """
        with self._state_lock:
            if self._state == LoopState.RUNNING:
                logger.debug("[AUTONOMOUS] Already running")
                return False
            mission = self.orchestrator.current_mission
            if mission is None:
                logger.warning("[AUTONOMOUS] Cannot start: no active mission")
                return False

            self._state = LoopState.RUNNING
            self._stopped.clear()
            self._schedule_locked()

        logger.info(
            f"[AUTONOMOUS] Started on '{mission.title}' every {self.interval_seconds:.3f}s"
        )
        safe_emit(self.notifier, EVENT_AUTONOMOUS_STARTED, {
            "mission_id": mission.id,
            "interval_ms": int(self.interval_seconds * 1000),
        })
        return True

    def stop(self) -> None:
        """
        Cancel the next tick. Idempotent.

        A tick already executing runs to completion.
        """
        with self._state_lock:
            if self._state == LoopState.STOPPED:
                return
            self._state = LoopState.STOPPED
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

        logger.info("[AUTONOMOUS] Stopped")
        mission = self.orchestrator.current_mission
        safe_emit(self.notifier, EVENT_AUTONOMOUS_STOPPED, {
            "mission_id": mission.id if mission else None,
        })
        # Waiters wake only after the stopped event is out, and not at all
        # if a subscriber restarted the loop meanwhile
        with self._state_lock:
            if self._state == LoopState.STOPPED:
                self._stopped.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the loop stops.

        Returns:
            True if the loop stopped, False on timeout
        """
        return self._stopped.wait(timeout)

    def _schedule_locked(self) -> None:
        timer = threading.Timer(self.interval_seconds, self._on_timer)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _on_timer(self) -> None:
        # Reschedule before running so ticks stay periodic even when a
        # step takes longer than the interval.
        with self._state_lock:
            if self._state != LoopState.RUNNING:
                return
            self._schedule_locked()
        try:
            self.tick()
        except Exception as e:
            # NoActiveMissionError or similar structural misuse: stop, do not spin
            logger.error(f"[AUTONOMOUS] Tick failed, stopping loop: {e}")
            self.stop()

    # ------------------------------------------------------------------

    def tick(self) -> TickOutcome:
        """
        Run one cycle: settle the mission if idle, else execute one step.
        """
        if not self._executing.acquire(blocking=False):
            self.ticks_skipped += 1
            logger.debug("[AUTONOMOUS] Previous tick still executing, skipping")
            return TickOutcome.SKIPPED

        try:
            return self._tick_locked()
        finally:
            self._executing.release()

    def _tick_locked(self) -> TickOutcome:
        if not self.is_running:
            return TickOutcome.STOPPED

        orchestrator = self.orchestrator
        mission = orchestrator.current_mission
        if mission is None:
            self.stop()
            return TickOutcome.STOPPED

        if orchestrator.next_runnable_step() is None:
            status = orchestrator.finalize()
            event = _SETTLED_EVENTS.get(status, EVENT_MISSION_BLOCKED)
            statistics = orchestrator.get_statistics()
            safe_emit(self.notifier, event, {
                "mission_id": mission.id,
                "mission_title": mission.title,
                "status": status.value,
                "statistics": statistics.to_dict() if statistics else None,
            })
            logger.info(f"[AUTONOMOUS] Nothing left to run; mission is {status.value}")
            self.stop()
            return TickOutcome.FINISHED

        result = orchestrator.execute_next_step()
        self.ticks_executed += 1

        if result.idle:
            # A manual caller took the step first; the next tick settles the mission
            return TickOutcome.SKIPPED

        if not result.success:
            if self.pause_on_error:
                payload: Dict[str, Any] = {
                    "mission_id": mission.id,
                    "step_id": result.step.step_id if result.step else None,
                    "step_description": result.step.description if result.step else None,
                    "step_status": result.step.status.value if result.step else None,
                    "error": result.error,
                }
                safe_emit(self.notifier, EVENT_AUTONOMOUS_PAUSED, payload)
                logger.warning(
                    f"[AUTONOMOUS] Paused after failure on step {payload['step_id']}: {result.error}"
                )
                self.stop()
                return TickOutcome.PAUSED
            return TickOutcome.FAILED

        summary = build_awareness_summary(
            mission,
            result.step.step_id,
            upcoming_window=orchestrator.config.upcoming_window_size,
        )
        safe_emit(self.notifier, EVENT_REFLEXION_SUMMARY, summary)
        return TickOutcome.EXECUTED
