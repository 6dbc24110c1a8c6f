"""Date/time helpers for the scheduling engine.

Pure Python, naive local time only. Provides:
- Parsing/formatting with the configured patterns (ISO fallback on parse)
- Evenly spaced time points between two times of day
- Half-open interval overlap test
- Week boundary helpers (weeks start on Monday)
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from src.config import settings
from src.scheduling.errors import FormatError, InvalidInterval

# Anchor used to do arithmetic on times of day
_ANCHOR = date(2000, 1, 3)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _clean(value: str | None, expected: str) -> str:
    if value is None or not value.strip():
        raise FormatError(value, expected)
    return value.strip()


def parse_date(value: str | None) -> date:
    """Parse a date with the configured pattern, falling back to ISO 8601."""
    pattern = settings.scheduling.date_format
    text = _clean(value, pattern)
    try:
        return datetime.strptime(text, pattern).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise FormatError(value, f"{pattern} or YYYY-MM-DD") from exc


def parse_time(value: str | None) -> time:
    """Parse a time of day with the configured pattern, falling back to ISO 8601."""
    pattern = settings.scheduling.time_format
    text = _clean(value, pattern)
    try:
        return datetime.strptime(text, pattern).time()
    except ValueError:
        pass
    try:
        return time.fromisoformat(text)
    except ValueError as exc:
        raise FormatError(value, f"{pattern} or HH:MM[:SS]") from exc


def parse_datetime(value: str | None) -> datetime:
    """Parse a date-time with the configured pattern, falling back to ISO 8601."""
    pattern = settings.scheduling.datetime_format
    text = _clean(value, pattern)
    try:
        return datetime.strptime(text, pattern)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise FormatError(value, f"{pattern} or YYYY-MM-DDTHH:MM[:SS]") from exc
    if parsed.tzinfo is not None:
        # Timezone-aware input is not part of the naive local-time model
        raise FormatError(value, "a naive local date-time")
    return parsed


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_date(value: date | None) -> str:
    return value.strftime(settings.scheduling.date_format) if value is not None else ""


def format_time(value: time | None) -> str:
    return value.strftime(settings.scheduling.time_format) if value is not None else ""


def format_datetime(value: datetime | None) -> str:
    return value.strftime(settings.scheduling.datetime_format) if value is not None else ""


def combine(day: date, at: time) -> datetime:
    """Join a date and a time of day into a naive datetime."""
    return datetime.combine(day, at)


# ---------------------------------------------------------------------------
# Intervals
# ---------------------------------------------------------------------------


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """True iff the half-open intervals [start_a, end_a) and [start_b, end_b) intersect.

    Intervals that only touch at an endpoint do not overlap.
    """
    return start_a < end_b and start_b < end_a


def generate_slots(range_start: time, range_end: time, step_minutes: int) -> list[time]:
    """Evenly spaced times from ``range_start`` up to and including ``range_end``.

    ``range_end`` is included only when it lands exactly on a step boundary.
    Empty when ``range_start > range_end``. Never wraps past midnight.

    Raises:
        InvalidInterval: If ``step_minutes`` is not positive.
    """
    if step_minutes <= 0:
        msg = f"Slot step must be positive, got {step_minutes}"
        raise InvalidInterval(msg)

    step = timedelta(minutes=step_minutes)
    current = datetime.combine(_ANCHOR, range_start)
    end = datetime.combine(_ANCHOR, range_end)

    slots: list[time] = []
    while current <= end and current.date() == _ANCHOR:
        slots.append(current.time())
        current += step
    return slots


# ---------------------------------------------------------------------------
# Weeks
# ---------------------------------------------------------------------------


def first_day_of_week(day: date) -> date:
    """The Monday on or before ``day``."""
    return day - timedelta(days=day.weekday())


def last_day_of_week(day: date) -> date:
    """The Sunday on or after ``day``."""
    return first_day_of_week(day) + timedelta(days=6)


def week_days(week_start: date) -> list[date]:
    """Seven consecutive dates starting at ``week_start``."""
    return [week_start + timedelta(days=offset) for offset in range(7)]

