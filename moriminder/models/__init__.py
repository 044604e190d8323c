"""Data models for Moriminder."""

from moriminder.models.task import Task, Priority, TaskKind, coerce_priority, coerce_kind
from moriminder.models.recurrence import RecurrencePattern, parse_pattern
from moriminder.models.notification import NotificationRequest, NotificationKind

__all__ = [
    "Task",
    "Priority",
    "TaskKind",
    "coerce_priority",
    "coerce_kind",
    "RecurrencePattern",
    "parse_pattern",
    "NotificationRequest",
    "NotificationKind",
]
