"""Task lifecycle for Moriminder: create, complete, delete, delivery callbacks.

Saving a task is authoritative. Reminder scheduling and occurrence generation
are best-effort side effects that run after the save: their failures are
logged and reported on the outcome, never rolled back into the save.
"""

import logging
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from moriminder.database.repository import TaskRepository
from moriminder.errors import BudgetExhausted, InvalidTask, PersistenceFailed
from moriminder.models.task import Task
from moriminder.notifications.dispatcher import ReminderDispatcher
from moriminder.notifications.local_center import LocalNotificationCenter
from moriminder.recurrence.generator import RecurringTaskGenerator

logger = logging.getLogger(__name__)


class TaskOutcome(BaseModel):
    """Result of a task lifecycle operation."""

    task: Task
    notification_ids: List[str] = Field(default_factory=list, description="Reminders scheduled for the task")
    scheduling_error: Optional[str] = Field(None, description="Why reminders could not be scheduled, if so")
    occurrence: Optional[Task] = Field(None, description="Occurrence generated for a repeating task")
    occurrence_notification_ids: List[str] = Field(default_factory=list)
    occurrence_error: Optional[str] = Field(None, description="Why the next occurrence could not be generated, if so")


def validate_task(task: Task) -> None:
    """Validate a task before saving.

    Raises:
        InvalidTask: Empty title, or deadline before start time
    """
    if not task.title or not task.title.strip():
        raise InvalidTask("Task title is required")

    if task.deadline is not None and task.start_time is not None and task.deadline < task.start_time:
        raise InvalidTask("Deadline must not be earlier than start time")


class TaskService:
    """Coordinates the repository, reminder dispatch and occurrence generation."""

    def __init__(
        self,
        repository: TaskRepository,
        dispatcher: ReminderDispatcher,
        generator: Optional[RecurringTaskGenerator] = None,
    ):
        self.repository = repository
        self.dispatcher = dispatcher
        self.generator = generator or RecurringTaskGenerator(repository)

    async def _schedule_reminders(self, task: Task, now: Optional[datetime]):
        """Schedule reminders; returns (notification ids, error message)."""
        if not task.reminder_enabled or task.is_completed:
            return [], None
        try:
            return await self.dispatcher.schedule_task(task, now=now), None
        except BudgetExhausted as e:
            logger.warning(f"Reminders for task {task.id} not scheduled: {e}")
            return [], str(e)

    async def _generate_occurrence(self, outcome: TaskOutcome, generate, now: Optional[datetime]) -> None:
        """Run a generator step for the outcome's task and schedule the occurrence it creates."""
        try:
            occurrence = generate(outcome.task, now=now)
        except PersistenceFailed as e:
            logger.error(f"Next occurrence of task {outcome.task.id} not generated: {type(e).__name__}: {str(e)}")
            outcome.occurrence_error = str(e)
            return
        if occurrence is None:
            return
        outcome.occurrence = occurrence
        outcome.occurrence_notification_ids, error = await self._schedule_reminders(occurrence, now)
        if error and not outcome.scheduling_error:
            outcome.scheduling_error = error

    async def create_task(self, task: Task, now: Optional[datetime] = None) -> TaskOutcome:
        """Validate, save and schedule a new task.

        Raises:
            InvalidTask: If validation fails (nothing is saved)
            PersistenceFailed: If the task could not be saved
        """
        validate_task(task)
        saved = self.repository.save(task)
        logger.info(f"Task saved: {saved.title[:50]}")

        outcome = TaskOutcome(task=saved)
        outcome.notification_ids, outcome.scheduling_error = await self._schedule_reminders(saved, now)

        if saved.is_repeating and not saved.is_instance:
            await self._generate_occurrence(outcome, self.generator.initialize, now)
        return outcome

    async def complete_task(self, task_id: str, now: Optional[datetime] = None) -> Optional[TaskOutcome]:
        """Mark a task completed, cancel its reminders and generate its next occurrence.

        Returns None if the task does not exist.
        """
        task = self.repository.find_by_id(task_id)
        if task is None:
            return None

        if now is None:
            now = datetime.utcnow()
        completed = task.model_copy(update={"is_completed": True, "completed_at": now, "updated_at": now})

        await self.dispatcher.cancel(task_id)
        saved = self.repository.save(completed)

        outcome = TaskOutcome(task=saved)
        if saved.is_repeating:
            await self._generate_occurrence(outcome, self.generator.on_completed, now)
        return outcome

    async def delete_task(self, task_id: str) -> bool:
        """Cancel a task's notifications and delete it."""
        if self.repository.find_by_id(task_id) is None:
            return False
        await self.dispatcher.cancel(task_id)
        return self.repository.delete(task_id)

    async def handle_delivery(self, notification_id: str, now: Optional[datetime] = None) -> Optional[str]:
        """Delivery callback: mark a notification delivered and queue the next open-ended reminder.

        Returns the id of the next reminder, if one was scheduled.
        """
        center = self.dispatcher.center
        if not isinstance(center, LocalNotificationCenter):
            raise TypeError("Delivery tracking needs a LocalNotificationCenter")

        if now is None:
            now = datetime.utcnow()
        row = center.mark_delivered(notification_id, delivered_at=now)
        if row is None:
            return None

        task = self.repository.find_by_id(row.task_id)
        if task is None:
            return None

        # Count on from the last queued reminder, falling back to the delivered one
        pending = center.list_pending(task.id)
        current_time = pending[-1].fire_time if pending else row.fire_time

        try:
            return await self.dispatcher.schedule_next(task, current_time, now=now)
        except BudgetExhausted as e:
            logger.warning(f"Next reminder for task {task.id} not scheduled: {e}")
            return None
