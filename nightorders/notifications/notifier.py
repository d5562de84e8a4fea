"""
Notification surface for Night Orders.

The engine emits fire-and-forget events (escalation, pause, reflexion
summaries, mission completion). Delivery to a UI is someone else's job;
this module provides the collaborator protocol plus two in-process
implementations.
"""

import logging
import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

# Event names emitted by the engine
EVENT_ESCALATION = "escalation"
EVENT_AUTONOMOUS_STARTED = "autonomous_started"
EVENT_AUTONOMOUS_STOPPED = "autonomous_stopped"
EVENT_AUTONOMOUS_PAUSED = "autonomous_paused"
EVENT_REFLEXION_SUMMARY = "reflexion_summary"
EVENT_MISSION_COMPLETED = "mission_completed"
EVENT_MISSION_BLOCKED = "mission_blocked"
EVENT_MISSION_FAILED = "mission_failed"

_WARNING_EVENTS = (EVENT_ESCALATION, EVENT_AUTONOMOUS_PAUSED, EVENT_MISSION_FAILED)

WILDCARD = "*"


class Notifier(Protocol):
    """Collaborator that receives engine events."""

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        ...


@dataclass
class NotificationEvent:
    """A single emitted event."""
    event_type: str
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.event_type,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


class EventBus:
    """
    In-process publish/subscribe notifier.

    Subscribers register per event name (or ``"*"`` for everything). A
    bounded history of emitted events is kept for inspection. Subscriber
    exceptions are logged and never reach the emitter.
    """

    def __init__(self, history_size: int = 500):
        self._subscribers: Dict[str, List[Callable[[NotificationEvent], None]]] = defaultdict(list)
        self._history: Deque[NotificationEvent] = deque(maxlen=history_size)
        self._lock = threading.Lock()

    def subscribe(self, event_name: str, callback: Callable[[NotificationEvent], None]) -> None:
        with self._lock:
            self._subscribers[event_name].append(callback)

    def unsubscribe(self, event_name: str, callback: Callable[[NotificationEvent], None]) -> bool:
        with self._lock:
            callbacks = self._subscribers.get(event_name, [])
            if callback in callbacks:
                callbacks.remove(callback)
                return True
            return False

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        event = NotificationEvent(event_type=event_name, data=dict(payload))
        with self._lock:
            self._history.append(event)
            callbacks = list(self._subscribers.get(event_name, ())) + list(
                self._subscribers.get(WILDCARD, ())
            )

        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"[EVENTS] Subscriber for '{event_name}' failed: {e}")

    def history(self, event_name: Optional[str] = None) -> List[NotificationEvent]:
        """Emitted events, oldest first, optionally filtered by name."""
        with self._lock:
            events = list(self._history)
        if event_name is None:
            return events
        return [e for e in events if e.event_type == event_name]

    def clear(self) -> None:
        with self._lock:
            self._history.clear()


class LoggingNotifier:
    """Writes every event to the ``nightorders.events`` logger."""

    def __init__(self, logger_name: str = "nightorders.events"):
        self._logger = logging.getLogger(logger_name)

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        level = logging.WARNING if event_name in _WARNING_EVENTS else logging.INFO
        self._logger.log(level, f"[EVENT] {event_name}: {payload}")


def safe_emit(notifier: Optional[Notifier], event_name: str, payload: Dict[str, Any]) -> None:
    """Fire-and-forget emit: errors are logged, never raised."""
    if notifier is None:
        return
    try:
        notifier.emit(event_name, payload)
    except Exception as e:
        logger.warning(f"[EVENTS] Failed to emit '{event_name}': {e}")
