"""Audit log subscriber — persists every SystemEvent to the audit_log table.

Registered as a global subscriber at startup. This is the clinic's
append-only trail of who booked, moved or cancelled what.

Never raises — failures are logged but never propagate to the event system.
"""

from __future__ import annotations

import logging

from src.db.engine import async_session_factory
from src.models.audit import AuditLog
from src.schemas.events import SystemEvent

logger = logging.getLogger(__name__)


def build_audit_entry(event: SystemEvent) -> AuditLog:
    return AuditLog(
        event_type=event.event_type.value,
        doctor_id=event.doctor_id,
        appointment_id=event.appointment_id,
        actor_id=event.actor_id,
        data=event.data,
    )


async def audit_on_event(event: SystemEvent) -> None:
    """Write a SystemEvent to the audit_log table.

    Failures are logged and swallowed — the audit trail must never make a
    committed booking look failed.
    """
    try:
        async with async_session_factory() as db:
            db.add(build_audit_entry(event))
            await db.commit()
    except Exception:
        logger.exception(
            "Failed to persist audit event: %s (appointment=%s)",
            event.event_type.value,
            event.appointment_id,
        )
