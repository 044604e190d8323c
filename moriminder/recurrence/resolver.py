"""Next-occurrence computation for repeating tasks."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from moriminder.models.recurrence import (
    CustomPattern,
    DailyPattern,
    EveryNDaysPattern,
    EveryNHoursPattern,
    MonthlyPattern,
    NthWeekdayOfMonthPattern,
    RecurrencePattern,
    WeeklyPattern,
    YearlyPattern,
    weekday_number,
)

# A 5th weekday exists in at least one of any three consecutive months
_MAX_MONTHS_SEARCHED = 12


def _nth_weekday_in_month(year: int, month: int, weekday: int, week: int) -> Optional[int]:
    """Day-of-month of the `week`-th `weekday` (1=Sunday) in a month, None if the month has fewer."""
    first = datetime(year, month, 1)
    offset = (weekday - weekday_number(first)) % 7
    day = 1 + offset + (week - 1) * 7
    month_len = ((first + relativedelta(months=1)) - first).days
    if day > month_len:
        return None
    return day


def _next_nth_weekday(p: NthWeekdayOfMonthPattern, reference: datetime) -> Optional[datetime]:
    # Start from the month after the reference month; skip months without that date.
    month_start = reference.replace(day=1) + relativedelta(months=1)
    for _ in range(_MAX_MONTHS_SEARCHED):
        day = _nth_weekday_in_month(month_start.year, month_start.month, p.weekday, p.week)
        if day is not None:
            return month_start.replace(day=day)
        month_start = month_start + relativedelta(months=1)
    return None


def _next_custom(p: CustomPattern, reference: datetime) -> Optional[datetime]:
    for days_ahead in range(1, 8):
        candidate = reference + timedelta(days=days_ahead)
        if weekday_number(candidate) in p.weekdays:
            return candidate
    return None


def next_occurrence(
    pattern: RecurrencePattern,
    reference: datetime,
    end_date: Optional[datetime] = None,
) -> Optional[datetime]:
    """Next occurrence of `pattern` after `reference`.

    Time of day is carried over from `reference`. Month and year steps clamp
    the day to the target month's length (Jan 31 + 1 month = Feb 28).

    Args:
        pattern: Recurrence pattern
        reference: Date of the current occurrence
        end_date: Last allowed occurrence timestamp (inclusive)

    Returns:
        Next occurrence, or None when there is no further occurrence
    """
    if isinstance(pattern, DailyPattern):
        nxt = reference + timedelta(days=1)
    elif isinstance(pattern, WeeklyPattern):
        nxt = reference + timedelta(days=7)
    elif isinstance(pattern, MonthlyPattern):
        nxt = reference + relativedelta(months=1)
    elif isinstance(pattern, YearlyPattern):
        nxt = reference + relativedelta(years=1)
    elif isinstance(pattern, EveryNDaysPattern):
        nxt = reference + timedelta(days=pattern.days)
    elif isinstance(pattern, EveryNHoursPattern):
        nxt = reference + timedelta(hours=pattern.hours)
    elif isinstance(pattern, NthWeekdayOfMonthPattern):
        nxt = _next_nth_weekday(pattern, reference)
    elif isinstance(pattern, CustomPattern):
        nxt = _next_custom(pattern, reference)
    else:
        raise ValueError(f"Unsupported recurrence pattern: {pattern!r}")

    if nxt is None:
        return None
    if end_date is not None and nxt > end_date:
        return None
    return nxt
