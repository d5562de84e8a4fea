"""
Logbook persistence for Night Orders.

The orchestrator talks to a ``Logbook`` collaborator. Two implementations
ship here:
- JsonLogbook: one directory per mission holding mission.json and an
  append-only executions.jsonl
- MemoryLogbook: keeps everything in process memory

Persistence is best effort from the orchestrator's point of view: it logs
logbook failures and carries on with the in-memory mission state.
"""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from ..errors import PersistenceError
from .mission_types import Mission, MissionStatus
from ..steps.step_types import StepExecutionRecord

logger = logging.getLogger(__name__)


class Logbook(Protocol):
    """Durable persistence collaborator."""

    def save_mission(self, mission: Mission) -> None:
        ...

    def update_mission_status(
        self,
        mission_id: str,
        status: MissionStatus,
        completed_at: Optional[datetime] = None,
    ) -> None:
        ...

    def save_step_execution(self, record: StepExecutionRecord) -> None:
        ...


class JsonLogbook:
    """
    JSON/JSONL logbook on the local filesystem.

    Storage structure:
        {base_dir}/{mission_id}/mission.json      - Mission header and step plan
        {base_dir}/{mission_id}/executions.jsonl  - One record per attempt

    executions.jsonl is append-only; records are never rewritten.
    """

    def __init__(self, base_dir: str = ".nightorders_logbook"):
        self.base_path = Path(base_dir)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._write_lock = threading.Lock()

    def _mission_dir(self, mission_id: str) -> Path:
        return self.base_path / mission_id

    def _mission_path(self, mission_id: str) -> Path:
        return self._mission_dir(mission_id) / "mission.json"

    def _executions_path(self, mission_id: str) -> Path:
        return self._mission_dir(mission_id) / "executions.jsonl"

    def save_mission(self, mission: Mission) -> None:
        """Write the mission header (overwrites any previous header)."""
        data = mission.to_dict(include_entries=False)
        data["updated_at"] = datetime.utcnow().isoformat()
        try:
            with self._write_lock:
                self._mission_dir(mission.id).mkdir(parents=True, exist_ok=True)
                with self._mission_path(mission.id).open("w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
        except OSError as e:
            raise PersistenceError(f"Failed to save mission: {e}", mission_id=mission.id) from e

        logger.debug(f"[LOGBOOK] Mission saved: {mission.id[:8]}")

    def update_mission_status(
        self,
        mission_id: str,
        status: MissionStatus,
        completed_at: Optional[datetime] = None,
    ) -> None:
        path = self._mission_path(mission_id)
        if not path.exists():
            raise PersistenceError(f"Mission {mission_id} not found", mission_id=mission_id)

        try:
            with self._write_lock:
                with path.open("r", encoding="utf-8") as f:
                    data = json.load(f)
                data["status"] = MissionStatus(status).value
                data["completed_at"] = completed_at.isoformat() if completed_at else None
                data["updated_at"] = datetime.utcnow().isoformat()
                with path.open("w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to update mission status: {e}", mission_id=mission_id) from e

        logger.debug(f"[LOGBOOK] Mission {mission_id[:8]} updated: {MissionStatus(status).value}")

    def save_step_execution(self, record: StepExecutionRecord) -> None:
        json_line = json.dumps(record.to_dict(), ensure_ascii=False)
        try:
            with self._write_lock:
                self._mission_dir(record.mission_id).mkdir(parents=True, exist_ok=True)
                with self._executions_path(record.mission_id).open("a", encoding="utf-8") as f:
                    f.write(json_line + "\n")
        except OSError as e:
            raise PersistenceError(
                f"Failed to save step execution: {e}", mission_id=record.mission_id
            ) from e

        logger.debug(
            f"[LOGBOOK] Step execution saved: {record.step_id} ({record.agent_role}) - {record.status}"
        )

    def load_mission_record(self, mission_id: str) -> Dict[str, Any]:
        """
        Load the stored mission header.

        Raises:
            FileNotFoundError: If the mission does not exist
        """
        path = self._mission_path(mission_id)
        if not path.exists():
            raise FileNotFoundError(f"Mission {mission_id} not found")
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def read_executions(self, mission_id: str) -> List[StepExecutionRecord]:
        """All execution records of a mission, in the order they were written."""
        path = self._executions_path(mission_id)
        if not path.exists():
            return []

        records = []
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(StepExecutionRecord.from_dict(json.loads(line)))
                except (json.JSONDecodeError, KeyError, ValueError) as e:
                    logger.warning(f"[LOGBOOK] Skipping malformed line {line_num}: {e}")
        return records

    def list_missions(self) -> List[Dict[str, Any]]:
        """
        Summaries of stored missions, newest first.

        Returns:
            List of dicts with id, title, status, created_at, step count
        """
        results = []
        for path in self.base_path.glob("*/mission.json"):
            try:
                with path.open("r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.debug(f"[LOGBOOK] Skipping unreadable mission file {path}: {e}")
                continue
            results.append({
                "id": data.get("id", path.parent.name),
                "title": data.get("title", ""),
                "status": data.get("status", ""),
                "created_at": data.get("created_at", ""),
                "steps": len(data.get("steps", [])),
            })
        results.sort(key=lambda r: r["created_at"], reverse=True)
        return results


class MemoryLogbook:
    """Logbook that keeps missions and execution records in memory."""

    def __init__(self):
        self.missions: Dict[str, Dict[str, Any]] = {}
        self.executions: List[StepExecutionRecord] = []
        self._lock = threading.Lock()

    def save_mission(self, mission: Mission) -> None:
        with self._lock:
            self.missions[mission.id] = mission.to_dict(include_entries=False)

    def update_mission_status(
        self,
        mission_id: str,
        status: MissionStatus,
        completed_at: Optional[datetime] = None,
    ) -> None:
        with self._lock:
            if mission_id not in self.missions:
                raise PersistenceError(f"Mission {mission_id} not found", mission_id=mission_id)
            self.missions[mission_id]["status"] = MissionStatus(status).value
            self.missions[mission_id]["completed_at"] = (
                completed_at.isoformat() if completed_at else None
            )

    def save_step_execution(self, record: StepExecutionRecord) -> None:
        with self._lock:
            self.executions.append(record)

    def executions_for(self, mission_id: str) -> List[StepExecutionRecord]:
        with self._lock:
            return [r for r in self.executions if r.mission_id == mission_id]
