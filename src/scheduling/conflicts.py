"""Conflict detection — does a candidate interval collide with a doctor's bookings?

Pure predicate, no I/O. Every booking and reschedule path calls
``has_conflict`` before committing a write.

Rules:
- only appointments of ``doctor_id`` in an active status are considered,
  even if the caller forgot to pre-filter
- ``exclude_id`` skips the appointment being moved (None when creating)
- intervals are half-open: back-to-back bookings do not conflict
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Iterator
from datetime import datetime
from typing import TYPE_CHECKING

from src.models.enums import is_active
from src.scheduling.errors import InvalidInterval
from src.scheduling.timeutils import overlaps

if TYPE_CHECKING:
    from src.models.appointment import Appointment


def _validate(candidate_start: datetime, candidate_end: datetime) -> None:
    if candidate_start >= candidate_end:
        msg = f"Interval start {candidate_start} must be before end {candidate_end}"
        raise InvalidInterval(msg)


def _overlapping(
    doctor_id: uuid.UUID,
    candidate_start: datetime,
    candidate_end: datetime,
    existing: Iterable[Appointment],
    exclude_id: uuid.UUID | None,
) -> Iterator[Appointment]:
    for appointment in existing:
        if appointment.doctor_id != doctor_id:
            continue
        if not is_active(appointment.status):
            continue
        if exclude_id is not None and appointment.id == exclude_id:
            continue
        if overlaps(candidate_start, candidate_end, appointment.starts_at, appointment.ends_at):
            yield appointment


def has_conflict(
    doctor_id: uuid.UUID,
    candidate_start: datetime,
    candidate_end: datetime,
    existing: Iterable[Appointment],
    exclude_id: uuid.UUID | None = None,
) -> bool:
    """True if ``[candidate_start, candidate_end)`` overlaps an active appointment.

    Args:
        doctor_id: Doctor whose calendar is checked.
        candidate_start: Start of the interval to book.
        candidate_end: End of the interval to book (exclusive).
        existing: The doctor's appointments relevant to the check.
        exclude_id: Appointment to ignore, for in-place updates.

    Raises:
        InvalidInterval: If the candidate interval is empty or inverted.
    """
    _validate(candidate_start, candidate_end)
    return next(_overlapping(doctor_id, candidate_start, candidate_end, existing, exclude_id), None) is not None


def find_conflicts(
    doctor_id: uuid.UUID,
    candidate_start: datetime,
    candidate_end: datetime,
    existing: Iterable[Appointment],
    exclude_id: uuid.UUID | None = None,
) -> list[Appointment]:
    """Every active appointment overlapping the candidate, in input order."""
    _validate(candidate_start, candidate_end)
    return list(_overlapping(doctor_id, candidate_start, candidate_end, existing, exclude_id))
