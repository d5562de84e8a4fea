"""
Pytest fixtures and configuration for the Night Orders test suite.
"""

import shutil
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Tuple

import pytest

# Ensure nightorders package is importable
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from nightorders.config import OrchestrationConfig, reset_config
from nightorders.missions.mission_orchestrator import MissionOrchestrator
from nightorders.missions.mission_store import MemoryLogbook
from nightorders.missions.mission_types import ContextSnapshot, Step
from nightorders.steps.step_types import ExecutionOutcome


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep NIGHTORDERS_* variables and the global config out of tests."""
    import os
    for key in list(os.environ):
        if key.startswith("NIGHTORDERS_"):
            monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    temp_path = Path(tempfile.mkdtemp(prefix="nightorders_test_"))
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def config() -> OrchestrationConfig:
    """Deterministic config; the long interval keeps loop timers from firing on their own."""
    return OrchestrationConfig(
        max_retries=3,
        auto_escalate=True,
        context_window_size=5,
        upcoming_window_size=3,
        enable_reflexion=True,
        autonomous_interval_ms=60_000,
        pause_on_error=True,
        working_directory="/work/app",
        available_tools=("read_file", "write_file"),
    )


@pytest.fixture
def linear_steps() -> List[Step]:
    """Three coder steps, each depending on the previous one."""
    return [
        Step(step_id=0, description="Design color scheme", assigned_role="coder"),
        Step(step_id=1, description="Create theme store", assigned_role="coder", dependencies=(0,)),
        Step(
            step_id=2,
            description="Wire toggle into settings",
            assigned_role="coder",
            dependencies=(1,),
            expected_outcome="Toggle switches the theme",
        ),
    ]


class ScriptedExecutor:
    """
    Executor returning scripted outcomes per step id.

    ``script`` maps a step id to a list of outcomes (ExecutionOutcome, dict
    or an Exception to raise), consumed one per attempt. The last item is
    repeated once the list runs out; unscripted steps succeed.
    """

    def __init__(self, script: Optional[Dict[int, List[Any]]] = None):
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.calls: List[Tuple[int, ContextSnapshot]] = []
        self._lock = threading.Lock()

    def __call__(self, step: Step, context: ContextSnapshot) -> Any:
        with self._lock:
            self.calls.append((step.step_id, context))
            queue = self.script.get(step.step_id)
            if queue:
                item = queue.pop(0) if len(queue) > 1 else queue[0]
            else:
                item = ExecutionOutcome(
                    success=True,
                    action=f"did {step.description}",
                    summary=f"step {step.step_id} done",
                )
        if isinstance(item, BaseException):
            raise item
        return item

    def call_count(self, step_id: int) -> int:
        return sum(1 for sid, _ in self.calls if sid == step_id)

    def context_for(self, step_id: int, attempt: int = 0) -> ContextSnapshot:
        return [ctx for sid, ctx in self.calls if sid == step_id][attempt]


class RecordingNotifier:
    """Notifier that remembers every emitted event."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []
        self._lock = threading.Lock()

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            self.events.append((event_name, dict(payload)))

    def named(self, event_name: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [p for name, p in self.events if name == event_name]

    def names(self) -> List[str]:
        with self._lock:
            return [name for name, _ in self.events]


@pytest.fixture
def executor() -> ScriptedExecutor:
    return ScriptedExecutor()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def logbook() -> MemoryLogbook:
    return MemoryLogbook()


@pytest.fixture
def make_orchestrator(config, logbook, notifier):
    """Factory for orchestrators sharing the test's logbook and notifier."""
    def _make(executor, **overrides) -> MissionOrchestrator:
        cfg = config.with_overrides(**overrides) if overrides else config
        return MissionOrchestrator(executor, logbook=logbook, notifier=notifier, config=cfg)
    return _make


@pytest.fixture
def failure():
    """Build a failed ExecutionOutcome with one problem."""
    def _failure(problem: str = "tests failed") -> ExecutionOutcome:
        return ExecutionOutcome(success=False, action="attempt", summary=problem, problems=(problem,))
    return _failure
