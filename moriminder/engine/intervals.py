"""Reminder interval policy for Moriminder.

Maps a task's priority and kind to an ordered list of reminder intervals
(minutes). The scheduler uses the list cyclically.

Deadline tasks use the interval the user chose. Scheduled events use staged
intervals: every stage whose threshold is still ahead of the event start
contributes its interval, and an overdue interval is added once the event has
started. This function is deterministic - same inputs always produce same
outputs.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from moriminder.models.constants import FALLBACK_INTERVAL_MIN
from moriminder.models.task import Priority, Task, TaskKind, coerce_kind, coerce_priority


# (threshold before start, interval minutes), descending thresholds
Stage = Tuple[timedelta, int]

_MEDIUM_STAGES: List[Stage] = [
    (timedelta(days=7), 1440),
    (timedelta(days=3), 720),
    (timedelta(days=1), 360),
    (timedelta(hours=6), 180),
    (timedelta(hours=3), 60),
    (timedelta(hours=1), 30),
]

# priority -> (stages, overdue interval)
STAGED_INTERVALS: Dict[Priority, Tuple[List[Stage], int]] = {
    Priority.LOW: (
        [
            (timedelta(days=3), 1440),
            (timedelta(days=1), 720),
            (timedelta(hours=6), 360),
            (timedelta(hours=1), 60),
        ],
        30,
    ),
    Priority.MEDIUM: (_MEDIUM_STAGES, 15),
    Priority.HIGH: (
        _MEDIUM_STAGES
        + [
            (timedelta(minutes=30), 15),
            (timedelta(minutes=15), 5),
            (timedelta(minutes=5), 1),
        ],
        1,
    ),
}


def staged_intervals(
    start_time: datetime,
    stages: List[Stage],
    overdue_interval: int,
    now: datetime,
) -> List[int]:
    """Collect the intervals of every stage whose threshold lies before `start_time`.

    Args:
        start_time: Event start
        stages: (threshold, interval) pairs in descending threshold order
        overdue_interval: Interval appended once the event has started
        now: Reference time

    Returns:
        Non-empty list of interval minutes
    """
    time_until_start = start_time - now
    intervals: List[int] = []

    for threshold, interval in stages:
        if time_until_start > threshold:
            intervals.append(interval)

    if time_until_start <= timedelta(0):
        intervals.append(overdue_interval)

    return intervals or [FALLBACK_INTERVAL_MIN]


def calculate_reminder_intervals(
    priority,
    kind,
    reminder_interval_min: int,
    start_time: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> List[int]:
    """Reminder intervals (minutes) for a priority/kind pair.

    Args:
        priority: Priority (enum or stored value); None if unknown
        kind: TaskKind (enum or stored value); None if unknown
        reminder_interval_min: The task's user-configured interval
        start_time: Event start (scheduled events only)
        now: Reference time (defaults to utcnow)

    Returns:
        Non-empty ordered list of positive interval minutes
    """
    priority = coerce_priority(priority)
    kind = coerce_kind(kind)

    # Missing metadata: fall back to the task's own cadence
    if priority is None or kind is None:
        return [reminder_interval_min]

    if kind == TaskKind.DEADLINE_TASK:
        return [reminder_interval_min]

    if start_time is None:
        return [FALLBACK_INTERVAL_MIN]

    if now is None:
        now = datetime.utcnow()

    stages, overdue_interval = STAGED_INTERVALS[priority]
    return staged_intervals(start_time, stages, overdue_interval, now)


def intervals_for_task(task: Task, now: Optional[datetime] = None) -> List[int]:
    """Reminder intervals for a task."""
    return calculate_reminder_intervals(
        task.priority,
        task.kind,
        task.reminder_interval_min,
        start_time=task.start_time,
        now=now,
    )
