"""Exceptions raised by the Moriminder reminder engine."""

from typing import Optional


class BudgetExhausted(RuntimeError):
    """No notification slot is free when a scheduling attempt starts."""

    def __init__(self, message: str = "Notification limit reached", *, limit: Optional[int] = None, pending: Optional[int] = None):
        super().__init__(message)
        self.limit = limit
        self.pending = pending


class DispatchFailed(RuntimeError):
    """The notification center refused a single notification."""

    def __init__(self, message: str, *, task_id: Optional[str] = None):
        super().__init__(message)
        self.task_id = task_id


class InvalidTask(ValueError):
    """Task failed validation and must not be saved."""


class PersistenceFailed(RuntimeError):
    """The task repository could not store a task."""
