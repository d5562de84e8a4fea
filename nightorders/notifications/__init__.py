"""
Fire-and-forget notification surface for Night Orders.
"""

from .notifier import (
    EVENT_AUTONOMOUS_PAUSED,
    EVENT_AUTONOMOUS_STARTED,
    EVENT_AUTONOMOUS_STOPPED,
    EVENT_ESCALATION,
    EVENT_MISSION_BLOCKED,
    EVENT_MISSION_COMPLETED,
    EVENT_MISSION_FAILED,
    EVENT_REFLEXION_SUMMARY,
    EventBus,
    LoggingNotifier,
    NotificationEvent,
    Notifier,
    safe_emit,
)

__all__ = [
    "EVENT_AUTONOMOUS_PAUSED",
    "EVENT_AUTONOMOUS_STARTED",
    "EVENT_AUTONOMOUS_STOPPED",
    "EVENT_ESCALATION",
    "EVENT_MISSION_BLOCKED",
    "EVENT_MISSION_COMPLETED",
    "EVENT_MISSION_FAILED",
    "EVENT_REFLEXION_SUMMARY",
    "EventBus",
    "LoggingNotifier",
    "NotificationEvent",
    "Notifier",
    "safe_emit",
]
