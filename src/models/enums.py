"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin for JSON serialization; values are what gets stored.
"""

from __future__ import annotations

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states.

    Categories drive the engine:
      active    → SCHEDULED, CONFIRMED        (occupies the calendar)
      cancelled → CANCELLED_BY_PATIENT/CLINIC (frees the slot)
      completed → COMPLETED, NO_SHOW          (historical)
    """

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED_BY_PATIENT = "cancelled_by_patient"
    CANCELLED_BY_CLINIC = "cancelled_by_clinic"
    COMPLETED = "completed"
    NO_SHOW = "no_show"

    @property
    def label(self) -> str:
        return _LABELS[self][0]

    @property
    def description(self) -> str:
        return _LABELS[self][1]

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES

    @property
    def is_cancelled(self) -> bool:
        return self in CANCELLED_STATUSES

    @property
    def is_completed(self) -> bool:
        return self in COMPLETED_STATUSES

    @classmethod
    def from_label(cls, text: str | None) -> AppointmentStatus:
        """Resolve a label, stored value or member name (case-insensitive).

        Unrecognised text falls back to SCHEDULED. The fallback is logged at
        WARNING so corrupted rows remain visible.
        """
        needle = (text or "").strip().casefold()
        for status in cls:
            if needle in (status.label.casefold(), status.value, status.name.casefold()):
                return status
        logger.warning("Unknown appointment status %r, defaulting to %s", text, cls.SCHEDULED.value)
        return cls.SCHEDULED

    def __str__(self) -> str:
        return self.label


_LABELS: dict[AppointmentStatus, tuple[str, str]] = {
    AppointmentStatus.SCHEDULED: ("Scheduled", "The appointment is planned"),
    AppointmentStatus.CONFIRMED: ("Confirmed", "The patient confirmed the appointment"),
    AppointmentStatus.CANCELLED_BY_PATIENT: ("Cancelled by patient", "The patient cancelled the appointment"),
    AppointmentStatus.CANCELLED_BY_CLINIC: ("Cancelled by clinic", "The clinic cancelled the appointment"),
    AppointmentStatus.COMPLETED: ("Completed", "The appointment took place"),
    AppointmentStatus.NO_SHOW: ("No show", "The patient did not attend"),
}

ACTIVE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})
CANCELLED_STATUSES = frozenset({AppointmentStatus.CANCELLED_BY_PATIENT, AppointmentStatus.CANCELLED_BY_CLINIC})
COMPLETED_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW})


def _coerce(status: AppointmentStatus | str) -> AppointmentStatus:
    if isinstance(status, AppointmentStatus):
        return status
    return AppointmentStatus(status)


def is_active(status: AppointmentStatus | str) -> bool:
    """Status occupies the calendar and takes part in conflict checks."""
    return _coerce(status) in ACTIVE_STATUSES


def is_cancelled(status: AppointmentStatus | str) -> bool:
    return _coerce(status) in CANCELLED_STATUSES


def is_completed(status: AppointmentStatus | str) -> bool:
    return _coerce(status) in COMPLETED_STATUSES
