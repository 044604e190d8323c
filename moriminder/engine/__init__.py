"""Reminder scheduling engine for Moriminder."""

from moriminder.engine.intervals import calculate_reminder_intervals, intervals_for_task
from moriminder.engine.budget import NotificationBudget, ReservationLedger
from moriminder.engine.scheduler import (
    AnchorMode,
    ReminderPlan,
    ReminderScheduler,
    ReminderWindow,
    notification_cap,
    preview_reminders,
)

__all__ = [
    "calculate_reminder_intervals",
    "intervals_for_task",
    "NotificationBudget",
    "ReservationLedger",
    "AnchorMode",
    "ReminderPlan",
    "ReminderScheduler",
    "ReminderWindow",
    "notification_cap",
    "preview_reminders",
]
