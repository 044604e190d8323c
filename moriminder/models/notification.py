"""Notification request model for Moriminder."""

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field


class NotificationKind(str, Enum):
    """Notification kind enumeration."""
    ALARM = "alarm"
    REMINDER = "reminder"


class NotificationRequest(BaseModel):
    """A notification to hand to the notification center (never stored by the engine)."""

    task_id: str = Field(..., description="ID of the task the notification is for")
    fire_time: datetime = Field(..., description="When the notification should fire")
    kind: NotificationKind = Field(NotificationKind.REMINDER, description="Alarm or reminder")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
