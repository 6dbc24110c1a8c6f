"""Decoded working-hours value types.

Kept free of ORM imports: the Doctor model decodes its stored string into
these on attribute access.
"""

from __future__ import annotations

from datetime import date, time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Weekday(str, Enum):
    """Lowercase English day names, as stored in the working-hours encoding."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, day: date) -> Weekday:
        return _WEEKDAY_ORDER[day.weekday()]

    @property
    def ordinal(self) -> int:
        """0 for Monday … 6 for Sunday (``date.weekday()`` convention)."""
        return _WEEKDAY_ORDER.index(self)


_WEEKDAY_ORDER: list[Weekday] = list(Weekday)


class TimeRange(BaseModel):
    """One bookable interval of a working day, ``[start, end)``."""

    model_config = ConfigDict(frozen=True)

    start: time
    end: time

    @property
    def is_inverted(self) -> bool:
        return self.start >= self.end


class WorkingHours(BaseModel):
    """Per-weekday ordered ranges. A missing day means the doctor does not work."""

    model_config = ConfigDict(frozen=True)

    days: dict[Weekday, tuple[TimeRange, ...]] = Field(default_factory=dict)
