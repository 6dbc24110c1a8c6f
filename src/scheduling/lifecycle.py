"""Appointment status lifecycle.

The clinic allows any status to follow any other: the engine only relies
on the active / cancelled / completed categories. A stricter lifecycle can
be switched on by assigning a transition table to STATUS_TRANSITIONS, in
the same ``{current: allowed next}`` shape the rest of the engine reads.
"""

from __future__ import annotations

import logging

from src.models.enums import AppointmentStatus
from src.scheduling.errors import InvalidTransition

logger = logging.getLogger(__name__)

# None = permissive. Example of a stricter table:
#   {AppointmentStatus.COMPLETED: frozenset(), AppointmentStatus.CONFIRMED: frozenset({...}), ...}
STATUS_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] | None = None


def can_transition(
    current: AppointmentStatus,
    new: AppointmentStatus,
    table: dict[AppointmentStatus, frozenset[AppointmentStatus]] | None = None,
) -> bool:
    """Check a status change against ``table`` (module default when omitted)."""
    guard = STATUS_TRANSITIONS if table is None else table
    if guard is None or current == new:
        return True
    return new in guard.get(current, frozenset())


def ensure_transition(
    current: AppointmentStatus,
    new: AppointmentStatus,
    table: dict[AppointmentStatus, frozenset[AppointmentStatus]] | None = None,
) -> None:
    """Raise InvalidTransition when ``current → new`` is refused."""
    if not can_transition(current, new, table):
        msg = f"Invalid status change: {current.value} → {new.value}"
        raise InvalidTransition(msg)
    if current != new:
        logger.debug("Status change allowed: %s → %s", current.value, new.value)


def cancellation_status(by_patient: bool) -> AppointmentStatus:
    """Which cancelled status to record for a cancellation."""
    if by_patient:
        return AppointmentStatus.CANCELLED_BY_PATIENT
    return AppointmentStatus.CANCELLED_BY_CLINIC


def reactivates(current: AppointmentStatus, new: AppointmentStatus) -> bool:
    """True when the change puts a non-active appointment back in the calendar."""
    return not current.is_active and new.is_active
