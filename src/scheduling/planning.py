"""Planning aggregation — day and week views over already-fetched appointments.

Pure transformations, no side effects. Counting follows the storage rule:
every status except the cancelled ones counts.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import date
from typing import TYPE_CHECKING

from src.models.enums import is_cancelled
from src.scheduling.timeutils import week_days

if TYPE_CHECKING:
    from src.models.appointment import Appointment


def group_by_day(appointments: Iterable[Appointment], week_start: date) -> dict[date, list[Appointment]]:
    """Map each of the seven days from ``week_start`` to its appointments, sorted by start.

    Days without appointments map to an empty list; appointments outside the
    week are ignored.
    """
    grouped: dict[date, list[Appointment]] = {day: [] for day in week_days(week_start)}
    for appointment in appointments:
        bucket = grouped.get(appointment.starts_at.date())
        if bucket is not None:
            bucket.append(appointment)
    for bucket in grouped.values():
        bucket.sort(key=lambda a: a.starts_at)
    return grouped


def count_for(doctor_id: uuid.UUID, day: date, appointments: Iterable[Appointment]) -> int:
    """Non-cancelled appointments of ``doctor_id`` starting on ``day``."""
    return sum(
        1
        for a in appointments
        if a.doctor_id == doctor_id and a.starts_at.date() == day and not is_cancelled(a.status)
    )


def days_with_appointments(
    doctor_id: uuid.UUID,
    year: int,
    month: int,
    appointments: Iterable[Appointment],
) -> list[int]:
    """Sorted day-of-month numbers on which the doctor has a non-cancelled appointment."""
    days = {
        a.starts_at.day
        for a in appointments
        if a.doctor_id == doctor_id
        and a.starts_at.year == year
        and a.starts_at.month == month
        and not is_cancelled(a.status)
    }
    return sorted(days)
