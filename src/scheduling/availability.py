"""Free-slot generation from a doctor's working hours.

For a date, every range of that weekday is cut into ``step_minutes`` slots
and a slot start ``t`` is kept iff:
  - ``[t, t + step)`` fits inside the range, and
  - booking ``[t, t + step)`` would pass ``has_conflict`` (same rules, same code).

Slots are never stored; they are recomputed on every query.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, time, timedelta
from typing import TYPE_CHECKING

from src.scheduling.conflicts import has_conflict
from src.scheduling.errors import InvalidInterval
from src.scheduling.timeutils import combine, generate_slots
from src.scheduling.working_hours import ranges_for
from src.schemas.working_hours import Weekday

if TYPE_CHECKING:
    from src.models.appointment import Appointment
    from src.models.doctor import Doctor


def available_slots(
    doctor: Doctor,
    day: date,
    existing_for_day: Sequence[Appointment],
    step_minutes: int,
) -> list[time]:
    """Bookable start times for ``doctor`` on ``day``.

    Args:
        doctor: Provides ``id`` and the decoded ``working_hours``.
        day: Date to browse.
        existing_for_day: The doctor's appointments on ``day`` (any status).
        step_minutes: Slot granularity, also the length of each slot.

    Returns:
        Slot start times in range order, chronological within a range.
        Overlapping ranges are not deduplicated.
    """
    if step_minutes <= 0:
        msg = f"Slot step must be positive, got {step_minutes}"
        raise InvalidInterval(msg)

    step = timedelta(minutes=step_minutes)
    kept: list[time] = []
    for time_range in ranges_for(doctor.working_hours, Weekday.from_date(day)):
        if time_range.is_inverted:
            continue
        range_end = combine(day, time_range.end)
        for candidate in generate_slots(time_range.start, time_range.end, step_minutes):
            slot_start = combine(day, candidate)
            slot_end = slot_start + step
            if slot_end > range_end:
                break
            if not has_conflict(doctor.id, slot_start, slot_end, existing_for_day):
                kept.append(candidate)
    return kept


def first_available_slot(
    doctor: Doctor,
    day: date,
    existing_for_day: Sequence[Appointment],
    step_minutes: int,
) -> time | None:
    """Earliest free slot of the day in range order, or None when fully booked."""
    slots = available_slots(doctor, day, existing_for_day, step_minutes)
    return slots[0] if slots else None
