"""Hands planned reminders to the notification center.

Each notification is an independent awaitable step, so cancelling the
dispatching coroutine stops the rest of the batch. A notification the center
rejects is logged and skipped; the rest of the batch still goes out.
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from moriminder.engine.scheduler import ReminderPlan, ReminderScheduler
from moriminder.errors import DispatchFailed
from moriminder.models.notification import NotificationKind
from moriminder.models.task import Task
from moriminder.notifications.center import NotificationCenter

logger = logging.getLogger(__name__)


class ReminderDispatcher:
    """Plans a task's reminders and schedules them with the notification center."""

    def __init__(self, center: NotificationCenter, scheduler: ReminderScheduler):
        self.center = center
        self.scheduler = scheduler

    async def dispatch(self, plan: ReminderPlan) -> List[str]:
        """Schedule every request of a plan; returns the ids that were scheduled.

        The plan's budget reservation is released when the batch ends, however
        it ends.
        """
        notification_ids: List[str] = []
        try:
            for request in plan.requests():
                try:
                    notification_id = await asyncio.to_thread(
                        self.center.schedule, request.task_id, request.fire_time, request.kind
                    )
                except DispatchFailed as e:
                    logger.warning(f"Reminder for task {request.task_id} at {request.fire_time} not scheduled: {e}")
                    continue
                notification_ids.append(notification_id)
        finally:
            self.scheduler.budget.release(plan.reserved)
            plan.reserved = 0
        return notification_ids

    async def schedule_task(self, task: Task, now: Optional[datetime] = None) -> List[str]:
        """Plan and schedule a task's reminders.

        Raises:
            BudgetExhausted: If no slot is free before the batch starts
        """
        plan = self.scheduler.schedule(task, now=now)
        notification_ids = await self.dispatch(plan)
        instance_info = " (occurrence)" if task.is_instance else ""
        logger.info(f"Reminders scheduled for '{task.title[:50]}'{instance_info}: {len(notification_ids)}/{len(plan.fire_times)}")
        return notification_ids

    async def schedule_next(
        self,
        task: Task,
        current_time: datetime,
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        """Schedule the single next reminder of an open-ended task.

        Raises:
            BudgetExhausted: If no slot is free
        """
        next_time = self.scheduler.schedule_next(task, current_time, now=now)
        if next_time is None:
            return None

        with self.scheduler.budget.reserved(1):
            try:
                notification_id = await asyncio.to_thread(
                    self.center.schedule, task.id, next_time, NotificationKind.REMINDER
                )
            except DispatchFailed as e:
                logger.warning(f"Next reminder for task {task.id} at {next_time} not scheduled: {e}")
                return None
        logger.debug(f"Next reminder for task {task.id} at {next_time}")
        return notification_id

    async def cancel(self, task_id: str) -> int:
        """Cancel every pending notification of a task."""
        return await asyncio.to_thread(self.center.cancel_all, task_id)
