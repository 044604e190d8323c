"""Recurrence patterns for Moriminder.

A pattern is a tagged variant: one small model per kind, discriminated by
`type`. Patterns are frozen once built; a generated occurrence carries a copy
of its parent's pattern.

Weekdays use 1=Sunday ... 7=Saturday throughout.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator


class _Pattern(BaseModel):
    class Config:
        frozen = True


class DailyPattern(_Pattern):
    type: Literal["daily"] = "daily"


class WeeklyPattern(_Pattern):
    type: Literal["weekly"] = "weekly"


class MonthlyPattern(_Pattern):
    type: Literal["monthly"] = "monthly"


class YearlyPattern(_Pattern):
    type: Literal["yearly"] = "yearly"


class EveryNDaysPattern(_Pattern):
    type: Literal["every_n_days"] = "every_n_days"
    days: int = Field(..., ge=1, description="Repeat every N days")


class EveryNHoursPattern(_Pattern):
    type: Literal["every_n_hours"] = "every_n_hours"
    hours: int = Field(..., ge=1, description="Repeat every N hours")


class NthWeekdayOfMonthPattern(_Pattern):
    """E.g. 'second Tuesday of every month' is weekday=3, week=2."""

    type: Literal["nth_weekday_of_month"] = "nth_weekday_of_month"
    weekday: int = Field(..., ge=1, le=7, description="1=Sunday ... 7=Saturday")
    week: int = Field(..., ge=1, le=5, description="Which occurrence within the month")


class CustomPattern(_Pattern):
    type: Literal["custom"] = "custom"
    weekdays: List[int] = Field(..., min_length=1, description="Weekdays (1=Sunday ... 7=Saturday)")

    @field_validator("weekdays")
    @classmethod
    def _validate_weekdays(cls, v):
        for day in v:
            if day < 1 or day > 7:
                raise ValueError("weekdays must be between 1 (Sunday) and 7 (Saturday)")
        return sorted(set(v))


RecurrencePattern = Annotated[
    Union[
        DailyPattern,
        WeeklyPattern,
        MonthlyPattern,
        YearlyPattern,
        EveryNDaysPattern,
        EveryNHoursPattern,
        NthWeekdayOfMonthPattern,
        CustomPattern,
    ],
    Field(discriminator="type"),
]


def weekday_number(d: date) -> int:
    """Weekday of `d` as 1=Sunday ... 7=Saturday."""
    # Python weekday: Monday=0 ... Sunday=6
    return (d.weekday() + 1) % 7 + 1


_PATTERN_ADAPTER = TypeAdapter(RecurrencePattern)


def parse_pattern(data: Optional[dict]) -> Optional[RecurrencePattern]:
    """Build a pattern from its stored dict form (None passes through)."""
    if data is None:
        return None
    return _PATTERN_ADAPTER.validate_python(data)
