"""Working-hours codec and lookups.

A doctor's weekly hours are stored as one line:

    monday:09:00-12:30,14:00-18:00;tuesday:09:00-12:30

- days are separated by ``;``
- the day name is separated from its ranges by the first ``:``
- ranges are separated by ``,`` and written ``HH:MM-HH:MM`` (24h, zero padded)
- day names are lowercase English; a day absent from the line is a day off

Decoding is lenient by default: a malformed day segment is dropped and
logged at WARNING, the rest of the line still decodes. ``strict=True`` (or
``STRICT_WORKING_HOURS=true``) turns that into a FormatError.
"""

from __future__ import annotations

import logging
from datetime import datetime, time

from src.config import settings
from src.scheduling.errors import FormatError
from src.schemas.working_hours import TimeRange, Weekday, WorkingHours

logger = logging.getLogger(__name__)

_DAY_SEPARATOR = ";"
_NAME_SEPARATOR = ":"
_RANGE_SEPARATOR = ","
_BOUND_SEPARATOR = "-"
_TIME_PATTERN = "%H:%M"


def _format_time(value: time) -> str:
    return value.strftime(_TIME_PATTERN)


def _parse_time(text: str) -> time:
    try:
        return datetime.strptime(text.strip(), _TIME_PATTERN).time()
    except ValueError as exc:
        raise FormatError(text, "HH:MM") from exc


def _parse_range(text: str) -> TimeRange:
    bounds = text.split(_BOUND_SEPARATOR)
    if len(bounds) != 2:
        raise FormatError(text, "HH:MM-HH:MM")
    return TimeRange(start=_parse_time(bounds[0]), end=_parse_time(bounds[1]))


def _parse_day(segment: str) -> tuple[Weekday, list[TimeRange]]:
    name, sep, ranges_text = segment.partition(_NAME_SEPARATOR)
    if not sep:
        raise FormatError(segment, "day:HH:MM-HH:MM[,HH:MM-HH:MM...]")
    try:
        day = Weekday(name.strip().lower())
    except ValueError as exc:
        raise FormatError(name, "a lowercase English day name") from exc

    pieces = [piece for piece in ranges_text.split(_RANGE_SEPARATOR) if piece.strip()]
    if not pieces:
        raise FormatError(segment, "at least one HH:MM-HH:MM range")
    return day, [_parse_range(piece) for piece in pieces]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def encode(model: WorkingHours) -> str:
    """Serialize to the stored one-line form, days in calendar order."""
    segments: list[str] = []
    for day in Weekday:
        ranges = model.days.get(day)
        if not ranges:
            continue
        joined = _RANGE_SEPARATOR.join(
            f"{_format_time(r.start)}{_BOUND_SEPARATOR}{_format_time(r.end)}" for r in ranges
        )
        segments.append(f"{day.value}{_NAME_SEPARATOR}{joined}")
    return _DAY_SEPARATOR.join(segments)


def decode(text: str | None, *, strict: bool | None = None) -> WorkingHours:
    """Parse the stored one-line form.

    Args:
        text: Encoded hours; None or blank means the doctor never works.
        strict: Raise on the first malformed day segment instead of skipping it.
            Defaults to ``settings.scheduling.strict_working_hours``.

    Raises:
        FormatError: Only in strict mode.
    """
    if strict is None:
        strict = settings.scheduling.strict_working_hours
    if not text or not text.strip():
        return WorkingHours()

    days: dict[Weekday, list[TimeRange]] = {}
    for segment in text.split(_DAY_SEPARATOR):
        if not segment.strip():
            continue
        try:
            day, ranges = _parse_day(segment)
        except FormatError:
            if strict:
                raise
            logger.warning("Skipping malformed working-hours segment %r", segment)
            continue
        days.setdefault(day, []).extend(ranges)

    return WorkingHours(days={day: tuple(ranges) for day, ranges in days.items()})


def ranges_for(model: WorkingHours, weekday: Weekday) -> list[TimeRange]:
    """Ordered ranges for ``weekday``; empty when the doctor does not work that day."""
    return list(model.days.get(weekday, ()))


def is_working_at(model: WorkingHours, moment: datetime) -> bool:
    """True when ``moment`` falls inside ``[start, end)`` of one of that day's ranges."""
    at = moment.time()
    return any(
        r.start <= at < r.end for r in ranges_for(model, Weekday.from_date(moment.date()))
    )
