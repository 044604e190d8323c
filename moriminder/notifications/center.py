"""Notification center interface for Moriminder.

The engine never talks to a platform notification system directly. It goes
through this interface, which exposes the three primitives it needs.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from moriminder.models.notification import NotificationKind


class NotificationCenter(ABC):
    """Schedule/cancel/count primitives of a notification subsystem."""

    @abstractmethod
    def pending_count(self) -> int:
        """Number of notifications currently pending (live, never cached)."""

    @abstractmethod
    def schedule(self, task_id: str, fire_time: datetime, kind: NotificationKind) -> str:
        """Schedule one notification and return its id.

        Raises:
            DispatchFailed: If the notification could not be scheduled
        """

    @abstractmethod
    def cancel_all(self, task_id: str) -> int:
        """Cancel every pending notification of a task; returns how many were cancelled."""
