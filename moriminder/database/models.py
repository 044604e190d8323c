"""SQLAlchemy database models for Moriminder."""

from datetime import datetime
from typing import Optional, Type, TypeVar, Union
import uuid
from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, UniqueConstraint

from moriminder.database.database import Base
from moriminder.models.notification import NotificationKind
from moriminder.models.recurrence import parse_pattern

T = TypeVar('T')


def enum_to_value(enum_obj: Union[str, T, None]) -> Optional[str]:
    """Convert enum to string value (handles enum, string and None).

    Args:
        enum_obj: Enum instance, string value or None

    Returns:
        String value of the enum, the string itself, or None
    """
    if enum_obj is None:
        return None
    if hasattr(enum_obj, 'value'):
        return enum_obj.value
    return str(enum_obj)


def value_to_enum(value: Optional[str], enum_class: Type[T], default: Optional[T]) -> Optional[T]:
    """Convert string to enum with fallback to default.

    Args:
        value: String value to convert
        enum_class: Enum class to convert to
        default: Value returned if conversion fails

    Returns:
        Enum instance, or default if conversion fails
    """
    if not value:
        return default
    try:
        return enum_class(value.lower())
    except (ValueError, AttributeError):
        return default


class TaskDB(Base):
    """Database model for Task."""

    __tablename__ = "tasks"
    __table_args__ = (
        # One stored occurrence per series and occurrence start.
        # NULL values do not participate (non-repeating tasks are unaffected).
        UniqueConstraint("parent_task_id", "occurrence_start", name="uq_task_occurrence"),
    )

    # Primary key
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # Basic fields
    title = Column(String, nullable=False)
    notes = Column(String, nullable=True)
    priority = Column(String, nullable=True)
    kind = Column(String, nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    deadline = Column(DateTime, nullable=True)
    start_time = Column(DateTime, nullable=True)

    # Reminder settings
    reminder_enabled = Column(Boolean, nullable=False, default=False)
    reminder_interval_min = Column(Integer, nullable=False, default=60)
    reminder_start_time = Column(DateTime, nullable=True)
    reminder_end_time = Column(DateTime, nullable=True)

    is_completed = Column(Boolean, nullable=False, default=False, index=True)

    # Recurrence (pattern stored as its JSON dict form)
    is_repeating = Column(Boolean, nullable=False, default=False)
    recurrence = Column(JSON, nullable=True)
    recurrence_end_date = Column(DateTime, nullable=True)
    parent_task_id = Column(String, nullable=True, index=True)
    occurrence_start = Column(DateTime, nullable=True, index=True)

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from moriminder.models.task import Task, Priority, TaskKind

        return Task(
            id=self.id,
            title=self.title,
            notes=self.notes,
            priority=value_to_enum(self.priority, Priority, None),
            kind=value_to_enum(self.kind, TaskKind, None),
            created_at=self.created_at,
            updated_at=self.updated_at,
            completed_at=self.completed_at,
            deadline=self.deadline,
            start_time=self.start_time,
            reminder_enabled=self.reminder_enabled,
            reminder_interval_min=self.reminder_interval_min,
            reminder_start_time=self.reminder_start_time,
            reminder_end_time=self.reminder_end_time,
            is_completed=self.is_completed,
            is_repeating=self.is_repeating,
            recurrence=parse_pattern(self.recurrence),
            recurrence_end_date=self.recurrence_end_date,
            parent_task_id=self.parent_task_id,
            occurrence_start=self.occurrence_start,
        )

    def apply(self, task) -> None:
        """Copy every field of a Pydantic task onto this row."""
        self.title = task.title
        self.notes = task.notes
        self.priority = enum_to_value(task.priority)
        self.kind = enum_to_value(task.kind)
        self.created_at = task.created_at
        self.updated_at = task.updated_at
        self.completed_at = task.completed_at
        self.deadline = task.deadline
        self.start_time = task.start_time
        self.reminder_enabled = task.reminder_enabled
        self.reminder_interval_min = task.reminder_interval_min
        self.reminder_start_time = task.reminder_start_time
        self.reminder_end_time = task.reminder_end_time
        self.is_completed = task.is_completed
        self.is_repeating = task.is_repeating
        self.recurrence = task.recurrence.model_dump() if task.recurrence is not None else None
        self.recurrence_end_date = task.recurrence_end_date
        self.parent_task_id = task.parent_task_id
        self.occurrence_start = task.occurrence_start

    @classmethod
    def from_pydantic(cls, task):
        """Create database model from Pydantic model."""
        row = cls(id=task.id)
        row.apply(task)
        return row


class PendingNotificationDB(Base):
    """A notification handed to the local notification center."""

    __tablename__ = "pending_notifications"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    task_id = Column(String, nullable=False, index=True)
    fire_time = Column(DateTime, nullable=False, index=True)
    kind = Column(String, nullable=False, default=NotificationKind.REMINDER.value)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    delivered_at = Column(DateTime, nullable=True, index=True)
