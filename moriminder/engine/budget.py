"""Notification budget for Moriminder.

The platform allows at most NOTIFICATION_LIMIT pending notifications across
all tasks. Concurrent scheduling calls (batch import, background refresh)
must not jointly overshoot it, so reading the live pending count and taking
slots happen inside one critical section.

Slots taken by `reserve` stay reserved until the dispatcher has handed the
notifications to the notification center; from then on the center's pending
count accounts for them and the caller releases the reservation.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from moriminder.errors import BudgetExhausted
from moriminder.models.constants import NOTIFICATION_LIMIT
from moriminder.notifications.center import NotificationCenter

logger = logging.getLogger(__name__)


class ReservationLedger:
    """Lock and outstanding reservations shared by every budget on one notification center."""

    def __init__(self):
        self.lock = threading.Lock()
        self.reserved = 0


class NotificationBudget:
    """Thread-safe view of the free notification slots.

    Budgets built on the same ledger (e.g. one per request session) share one
    critical section and one reservation count.
    """

    def __init__(
        self,
        center: NotificationCenter,
        limit: Optional[int] = None,
        ledger: Optional[ReservationLedger] = None,
    ):
        self.center = center
        self.limit = NOTIFICATION_LIMIT if limit is None else limit
        self.ledger = ledger or ReservationLedger()

    def _remaining_locked(self) -> int:
        return self.limit - self.center.pending_count() - self.ledger.reserved

    def remaining(self) -> int:
        """Free slots right now (pending count read fresh)."""
        with self.ledger.lock:
            return self._remaining_locked()

    def snapshot(self) -> Dict[str, int]:
        """Limit, pending, reserved and remaining slots in one consistent read."""
        with self.ledger.lock:
            pending = self.center.pending_count()
            return {
                "limit": self.limit,
                "pending": pending,
                "reserved": self.ledger.reserved,
                "remaining": self.limit - pending - self.ledger.reserved,
            }

    def reserve(self, requested: int) -> int:
        """Take up to `requested` slots.

        Args:
            requested: Number of slots wanted

        Returns:
            Number of slots granted: min(requested, remaining)

        Raises:
            BudgetExhausted: If no slot is free
        """
        with self.ledger.lock:
            pending = self.center.pending_count()
            remaining = self.limit - pending - self.ledger.reserved
            if remaining <= 0:
                logger.warning(f"Notification limit reached: {pending}/{self.limit} pending, {self.ledger.reserved} reserved")
                raise BudgetExhausted(
                    f"Notification limit reached ({self.limit})",
                    limit=self.limit,
                    pending=pending,
                )
            granted = min(max(requested, 0), remaining)
            self.ledger.reserved += granted

        if granted < requested:
            logger.info(f"Notification budget clipped: requested {requested}, granted {granted} ({remaining} free)")
        return granted

    def release(self, n: int) -> None:
        """Return `n` reserved slots."""
        if n <= 0:
            return
        with self.ledger.lock:
            self.ledger.reserved = max(0, self.ledger.reserved - n)

    @contextmanager
    def reserved(self, requested: int) -> Iterator[int]:
        """Reserve slots for the duration of a block; always released on exit."""
        granted = self.reserve(requested)
        try:
            yield granted
        finally:
            self.release(granted)
