"""Reminder scheduling algorithm for Moriminder.

Turns a task's reminder intervals and time window into concrete fire times,
bounded by a per-task cap and by the shared notification budget.

Two anchoring modes:
- forward: count intervals forward from an explicit reminder start (or now)
- backward: count intervals back from the task's deadline/start, so the last
  reminder lands closest to it

The fire-time math is pure; only `ReminderScheduler.schedule` touches the
budget.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from moriminder.engine.budget import NotificationBudget
from moriminder.engine.intervals import intervals_for_task
from moriminder.models.constants import (
    BOUNDED_NOTIFICATION_CAP_DEFAULT,
    BOUNDED_NOTIFICATION_CAPS,
    FALLBACK_INTERVAL_MIN,
    INSTANCE_NOTIFICATION_CAP_DEFAULT,
    INSTANCE_NOTIFICATION_CAPS,
    OPEN_ENDED_NOTIFICATION_CAP_DEFAULT,
    OPEN_ENDED_NOTIFICATION_CAPS,
)
from moriminder.models.notification import NotificationKind, NotificationRequest
from moriminder.models.task import Task, coerce_priority

logger = logging.getLogger(__name__)


class AnchorMode(str, Enum):
    """How fire times are anchored."""
    FORWARD = "forward"
    BACKWARD = "backward"


class ReminderWindow(BaseModel):
    """Time window a task's reminders are placed in (derived, never stored)."""

    anchor_mode: AnchorMode = Field(..., description="Forward from start_bound or backward from target")
    start_bound: datetime = Field(..., description="Forward anchor, or earliest allowed fire time for backward mode")
    end_bound: Optional[datetime] = Field(None, description="No reminder fires after this time")
    target: Optional[datetime] = Field(None, description="Deadline or start time the reminders lead up to")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


class ReminderPlan:
    """Result of planning one task's reminders."""

    def __init__(self, task_id: str, window: Optional[ReminderWindow] = None):
        self.task_id = task_id
        self.window = window
        self.intervals: List[int] = []
        self.cap = 0
        self.granted = 0
        self.fire_times: List[datetime] = []
        # Budget slots still held for fire_times; released once dispatched
        self.reserved = 0

    def requests(self) -> List[NotificationRequest]:
        return [
            NotificationRequest(task_id=self.task_id, fire_time=t, kind=NotificationKind.REMINDER)
            for t in self.fire_times
        ]


def notification_cap(task: Task) -> int:
    """Maximum reminders attempted for a task before budget clipping.

    Occurrences of repeating tasks get few slots so they don't crowd out
    other tasks; open-ended reminders get the most.
    """
    priority = coerce_priority(task.priority)

    if task.is_instance:
        return INSTANCE_NOTIFICATION_CAPS.get(priority, INSTANCE_NOTIFICATION_CAP_DEFAULT)

    if task.reminder_end_bound is None:
        return OPEN_ENDED_NOTIFICATION_CAPS.get(priority, OPEN_ENDED_NOTIFICATION_CAP_DEFAULT)

    return BOUNDED_NOTIFICATION_CAPS.get(priority, BOUNDED_NOTIFICATION_CAP_DEFAULT)


def reminder_window(task: Task, now: datetime) -> ReminderWindow:
    """Pick the anchoring mode and bounds for a task."""
    target = task.target_time

    if task.reminder_start_time is not None:
        anchor = task.reminder_start_time
        if anchor < now:
            logger.debug(f"Reminder start for task {task.id} is in the past; starting from now")
            anchor = now
        return ReminderWindow(
            anchor_mode=AnchorMode.FORWARD,
            start_bound=anchor,
            end_bound=task.reminder_end_bound,
            target=target,
        )

    if target is not None:
        return ReminderWindow(
            anchor_mode=AnchorMode.BACKWARD,
            start_bound=now,
            end_bound=task.reminder_end_bound,
            target=target,
        )

    return ReminderWindow(
        anchor_mode=AnchorMode.FORWARD,
        start_bound=now,
        end_bound=task.reminder_end_bound,
        target=None,
    )


def forward_fire_times(
    anchor: datetime,
    intervals: List[int],
    count: int,
    now: datetime,
    end_bound: Optional[datetime] = None,
) -> List[datetime]:
    """Fire times counted forward from `anchor`.

    Each step adds the next interval (cyclically). A time past `end_bound`
    ends generation; a time not after `now` is skipped but still uses up its
    step.
    """
    if not intervals:
        return []

    fire_times: List[datetime] = []
    current = anchor
    for step in range(count):
        current = current + timedelta(minutes=intervals[step % len(intervals)])

        if end_bound is not None and current > end_bound:
            break

        if current <= now:
            continue

        fire_times.append(current)
    return fire_times


def backward_fire_times(
    target: datetime,
    intervals: List[int],
    count: int,
    now: datetime,
    reminder_end_time: Optional[datetime] = None,
) -> List[datetime]:
    """Fire times counted back from `target`, returned in ascending order.

    The reminder closest to the target fires last.
    """
    if not intervals:
        return []

    candidates: List[datetime] = []
    accumulated = timedelta(0)
    for step in range(count):
        accumulated += timedelta(minutes=intervals[step % len(intervals)])
        candidate = target - accumulated

        # Only a non-positive interval could push a candidate past the target
        if candidate > target:
            break

        if reminder_end_time is not None and candidate > reminder_end_time:
            break

        if candidate <= now:
            # Every later step is earlier still
            break

        candidates.append(candidate)

    candidates.reverse()
    return candidates


def compute_fire_times(
    window: ReminderWindow,
    intervals: List[int],
    count: int,
    now: datetime,
    reminder_end_time: Optional[datetime] = None,
) -> List[datetime]:
    """Fire times for a window (pure)."""
    if count <= 0:
        return []
    if window.anchor_mode == AnchorMode.BACKWARD and window.target is not None:
        return backward_fire_times(window.target, intervals, count, now, reminder_end_time)
    return forward_fire_times(window.start_bound, intervals, count, now, window.end_bound)


def preview_reminders(task: Task, now: Optional[datetime] = None) -> ReminderPlan:
    """Plan a task's reminders without touching any budget (read-only)."""
    if now is None:
        now = datetime.utcnow()

    window = reminder_window(task, now)
    plan = ReminderPlan(task.id, window)
    if task.is_completed or not task.reminder_enabled:
        return plan

    plan.intervals = intervals_for_task(task, now)
    plan.cap = notification_cap(task)
    plan.granted = plan.cap
    plan.fire_times = compute_fire_times(window, plan.intervals, plan.cap, now, task.reminder_end_time)
    return plan


class ReminderScheduler:
    """Plans reminders for tasks against a shared notification budget."""

    def __init__(self, budget: NotificationBudget):
        self.budget = budget

    def schedule(
        self,
        task: Task,
        intervals: Optional[List[int]] = None,
        now: Optional[datetime] = None,
    ) -> ReminderPlan:
        """Plan a task's reminders, reserving budget for them.

        Completed tasks and tasks without reminders get an empty plan and
        reserve nothing. Slots for the returned fire times stay reserved on
        the plan (`plan.reserved`) until the caller dispatches and releases
        them.

        Args:
            task: Task to plan reminders for
            intervals: Interval minutes to use (defaults to the task's policy)
            now: Reference time (defaults to utcnow)

        Returns:
            ReminderPlan with ascending fire times, all after `now`

        Raises:
            BudgetExhausted: If no slot is free; nothing is computed
        """
        if now is None:
            now = datetime.utcnow()

        if task.is_completed or not task.reminder_enabled:
            return ReminderPlan(task.id)

        plan = ReminderPlan(task.id)
        plan.cap = notification_cap(task)
        plan.granted = self.budget.reserve(plan.cap)

        try:
            plan.window = reminder_window(task, now)
            plan.intervals = intervals if intervals else intervals_for_task(task, now)
            count = min(plan.cap, plan.granted)
            plan.fire_times = compute_fire_times(
                plan.window, plan.intervals, count, now, task.reminder_end_time
            )
        except Exception:
            self.budget.release(plan.granted)
            raise

        plan.reserved = len(plan.fire_times)
        self.budget.release(plan.granted - plan.reserved)

        logger.debug(
            f"Planned {len(plan.fire_times)} reminders for task {task.id} "
            f"({plan.window.anchor_mode}, cap {plan.cap}, granted {plan.granted})"
        )
        return plan

    def schedule_next(
        self,
        task: Task,
        current_time: datetime,
        now: Optional[datetime] = None,
    ) -> Optional[datetime]:
        """Next reminder after a delivery, for tasks without an end time.

        Open-ended reminders are scheduled one at a time; the delivery of one
        triggers this call for the next. Returns None when nothing should be
        scheduled.
        """
        if now is None:
            now = datetime.utcnow()

        if not task.reminder_enabled or task.is_completed:
            return None
        if task.reminder_end_bound is not None:
            return None

        intervals = intervals_for_task(task, now)
        interval = intervals[0] if intervals else FALLBACK_INTERVAL_MIN
        next_time = current_time + timedelta(minutes=interval)

        if next_time <= now:
            return None
        return next_time
