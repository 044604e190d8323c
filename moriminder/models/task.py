"""Task data model for Moriminder."""

from datetime import datetime
from typing import Optional
from enum import Enum
from pydantic import BaseModel, Field

from moriminder.models.recurrence import RecurrencePattern


class Priority(str, Enum):
    """Task priority enumeration."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskKind(str, Enum):
    """Task kind enumeration."""
    DEADLINE_TASK = "deadline_task"  # Has a due date; reminders use the user's own cadence
    SCHEDULED_EVENT = "scheduled_event"  # Starts at a time; reminders tighten as it approaches


class Task(BaseModel):
    """Canonical Task model (only the fields the reminder engine consumes)."""

    id: str = Field(..., description="Unique task identifier (UUID v4)")
    title: str = Field(..., description="Task title")
    notes: Optional[str] = Field(None, description="Task notes or description")
    priority: Optional[Priority] = Field(None, description="Task priority")
    kind: Optional[TaskKind] = Field(None, description="Deadline task or scheduled event")
    created_at: datetime = Field(..., description="Task creation timestamp")
    updated_at: datetime = Field(..., description="Task last update timestamp")
    completed_at: Optional[datetime] = Field(None, description="Completion timestamp")
    deadline: Optional[datetime] = Field(None, description="Task deadline")
    start_time: Optional[datetime] = Field(None, description="Event start time")

    # Reminder settings
    reminder_enabled: bool = Field(False, description="Whether repeating reminders are enabled")
    reminder_interval_min: int = Field(60, ge=1, description="User-chosen reminder interval in minutes")
    reminder_start_time: Optional[datetime] = Field(
        None, description="Explicit reminder start; reminders count forward from here when set"
    )
    reminder_end_time: Optional[datetime] = Field(None, description="No reminder fires after this time")

    is_completed: bool = Field(False, description="Whether the task is completed")

    # Recurrence (optional)
    is_repeating: bool = Field(False, description="Whether the task repeats")
    recurrence: Optional[RecurrencePattern] = Field(None, description="Recurrence pattern")
    recurrence_end_date: Optional[datetime] = Field(
        None, description="No occurrence is generated after this timestamp"
    )
    parent_task_id: Optional[str] = Field(
        None, description="If generated from a repeating task, the id of the series root"
    )
    occurrence_start: Optional[datetime] = Field(
        None, description="If generated from a repeating task, the occurrence target timestamp"
    )

    class Config:
        """Pydantic configuration."""
        use_enum_values = True

    @property
    def target_time(self) -> Optional[datetime]:
        """Deadline, or start time for events without one."""
        return self.deadline or self.start_time

    @property
    def reminder_end_bound(self) -> Optional[datetime]:
        """Latest time a reminder may fire (None means open-ended)."""
        return self.reminder_end_time or self.deadline or self.start_time

    @property
    def is_instance(self) -> bool:
        """Whether this task is a generated occurrence of a repeating task."""
        return self.parent_task_id is not None


def coerce_priority(value) -> Optional[Priority]:
    """Priority enum for a stored value (tasks keep enum *values*), None if unknown."""
    if value is None:
        return None
    try:
        return Priority(value)
    except ValueError:
        return None


def coerce_kind(value) -> Optional[TaskKind]:
    """TaskKind enum for a stored value, None if unknown."""
    if value is None:
        return None
    try:
        return TaskKind(value)
    except ValueError:
        return None
