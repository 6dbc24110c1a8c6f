"""Scheduling error taxonomy.

Engine functions raise these; the booking workflow adds ConflictDetected
as a business rejection that callers must tell apart from I/O failures.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling core."""


class FormatError(SchedulingError, ValueError):
    """A date, time or working-hours string did not parse."""

    def __init__(self, value: str | None, expected: str) -> None:
        self.value = value
        self.expected = expected
        super().__init__(f"Cannot parse {value!r}: expected {expected}")


class InvalidInterval(SchedulingError, ValueError):
    """Non-positive duration or step, or an interval whose start is not before its end."""


class AppointmentValidationError(SchedulingError, ValueError):
    """A booking request is incomplete or starts in the past."""


class InvalidTransition(SchedulingError):
    """Status change refused by a configured transition table."""


class ConflictDetected(SchedulingError):
    """The requested interval overlaps an active appointment of the same doctor."""

    def __init__(
        self,
        doctor_id: uuid.UUID,
        starts_at: datetime,
        ends_at: datetime,
        conflicting_ids: Sequence[uuid.UUID | None] = (),
    ) -> None:
        self.doctor_id = doctor_id
        self.starts_at = starts_at
        self.ends_at = ends_at
        self.conflicting_ids = list(conflicting_ids)
        super().__init__(
            f"Slot unavailable for doctor {doctor_id}: "
            f"{starts_at:%Y-%m-%d %H:%M}-{ends_at:%H:%M}"
        )


class AppointmentNotFound(SchedulingError, LookupError):
    """No appointment with the given id."""


class DoctorNotFound(SchedulingError, LookupError):
    """No doctor with the given id."""
