"""Database-backed notification center.

Keeps scheduled notifications in the `pending_notifications` table until a
delivery worker marks them delivered. Pending means "not delivered yet".
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from moriminder.database.models import PendingNotificationDB, enum_to_value
from moriminder.errors import DispatchFailed
from moriminder.models.notification import NotificationKind
from moriminder.notifications.center import NotificationCenter

logger = logging.getLogger(__name__)


class LocalNotificationCenter(NotificationCenter):
    """NotificationCenter storing notifications in the application database."""

    def __init__(self, db: Session):
        self.db = db

    def _pending_query(self):
        return self.db.query(PendingNotificationDB).filter(
            PendingNotificationDB.delivered_at.is_(None),
        )

    def pending_count(self) -> int:
        return self._pending_query().count()

    def schedule(self, task_id: str, fire_time: datetime, kind: NotificationKind = NotificationKind.REMINDER) -> str:
        row = PendingNotificationDB(
            task_id=task_id,
            fire_time=fire_time,
            kind=enum_to_value(kind),
        )
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            logger.debug(f"Scheduled {row.kind} {row.id} for task {task_id} at {fire_time}")
            return row.id
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to schedule notification for task {task_id}: {type(e).__name__}: {str(e)}")
            raise DispatchFailed(f"Failed to schedule notification at {fire_time}", task_id=task_id) from e

    def cancel_all(self, task_id: str) -> int:
        try:
            cancelled = (
                self._pending_query()
                .filter(PendingNotificationDB.task_id == task_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
            logger.debug(f"Cancelled {cancelled} notifications for task {task_id}")
            return int(cancelled)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to cancel notifications for task {task_id}: {type(e).__name__}: {str(e)}")
            raise

    def get(self, notification_id: str) -> Optional[PendingNotificationDB]:
        return self.db.query(PendingNotificationDB).filter(PendingNotificationDB.id == notification_id).first()

    def list_pending(self, task_id: Optional[str] = None) -> List[PendingNotificationDB]:
        """Pending notifications ordered by fire time, optionally for one task."""
        query = self._pending_query()
        if task_id is not None:
            query = query.filter(PendingNotificationDB.task_id == task_id)
        return query.order_by(PendingNotificationDB.fire_time).all()

    def due(self, now: datetime) -> List[PendingNotificationDB]:
        """Pending notifications whose fire time has been reached."""
        return (
            self._pending_query()
            .filter(PendingNotificationDB.fire_time <= now)
            .order_by(PendingNotificationDB.fire_time)
            .all()
        )

    def mark_delivered(self, notification_id: str, delivered_at: Optional[datetime] = None) -> Optional[PendingNotificationDB]:
        """Mark a notification delivered; returns the row, or None if unknown or already delivered."""
        row = self._pending_query().filter(PendingNotificationDB.id == notification_id).first()
        if row is None:
            return None
        try:
            row.delivered_at = delivered_at or datetime.utcnow()
            self.db.commit()
            self.db.refresh(row)
            return row
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to mark notification {notification_id} delivered: {type(e).__name__}: {str(e)}")
            raise
