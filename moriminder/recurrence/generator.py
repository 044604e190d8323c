"""Materialize the next occurrence of a repeating task.

An occurrence is a child task: same title, priority, kind, reminder and
recurrence settings as its parent, with its dates shifted to the resolved
occurrence. Every occurrence points at the series root through
`parent_task_id`.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from moriminder.database.repository import TaskRepository
from moriminder.models.task import Task
from moriminder.recurrence.resolver import next_occurrence

logger = logging.getLogger(__name__)


def _shift(value: Optional[datetime], delta) -> Optional[datetime]:
    return value + delta if value is not None else None


def build_occurrence(task: Task, occurrence_start: datetime, anchor: datetime, now: Optional[datetime] = None) -> Task:
    """Child task of `task` at `occurrence_start`.

    Args:
        task: Task the occurrence follows
        occurrence_start: Resolved occurrence timestamp
        anchor: Timestamp of `task` that maps onto `occurrence_start`
        now: Creation timestamp (defaults to utcnow)

    Returns:
        New, unsaved Task
    """
    if now is None:
        now = datetime.utcnow()
    delta = occurrence_start - anchor

    return task.model_copy(
        update={
            "id": str(uuid.uuid4()),
            "created_at": now,
            "updated_at": now,
            "completed_at": None,
            "is_completed": False,
            "deadline": _shift(task.deadline, delta),
            "start_time": _shift(task.start_time, delta),
            "reminder_start_time": _shift(task.reminder_start_time, delta),
            "reminder_end_time": _shift(task.reminder_end_time, delta),
            "parent_task_id": task.parent_task_id or task.id,
            "occurrence_start": occurrence_start,
        }
    )


class RecurringTaskGenerator:
    """Creates the next occurrence of repeating tasks through the task repository."""

    def __init__(self, repository: TaskRepository):
        self.repository = repository

    def _materialize(self, task: Task, anchor: datetime, now: Optional[datetime]) -> Optional[Task]:
        """Save the occurrence after `anchor`; None if there is none or it is already stored."""
        if not task.is_repeating or task.recurrence is None:
            return None

        occurrence_start = next_occurrence(task.recurrence, anchor, task.recurrence_end_date)
        if occurrence_start is None:
            logger.debug(f"No further occurrence for task {task.id}")
            return None

        series_id = task.parent_task_id or task.id
        existing = self.repository.find_occurrence(series_id, occurrence_start)
        if existing is not None:
            logger.debug(f"Occurrence of series {series_id} at {occurrence_start} already exists")
            return None

        occurrence = build_occurrence(task, occurrence_start, anchor, now)
        saved = self.repository.save(occurrence)
        logger.debug(f"Created occurrence {saved.id} of series {series_id} at {occurrence_start}")
        return saved

    def initialize(self, task: Task, now: Optional[datetime] = None) -> Optional[Task]:
        """Create the first occurrence of a newly created repeating task.

        Generated occurrences never spawn occurrences on creation.
        """
        if task.is_instance:
            return None
        anchor = task.target_time or task.created_at
        return self._materialize(task, anchor, now)

    def on_completed(self, task: Task, now: Optional[datetime] = None) -> Optional[Task]:
        """Create the occurrence following a completed task.

        Anchored at the task's own deadline/start, not at completion time, so
        late completions don't shift the series.
        """
        if now is None:
            now = datetime.utcnow()
        anchor = task.target_time or task.occurrence_start or task.completed_at or now
        return self._materialize(task, anchor, now)
