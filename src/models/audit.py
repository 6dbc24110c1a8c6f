"""AuditLog model — append-only trail of calendar events.

Every booking, reschedule, status change and cancellation is persisted
here from the event bus. No updates or deletes.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimestampMixin


class AuditLog(TimestampMixin, Base):
    """Immutable audit trail entry."""

    __tablename__ = "audit_log"

    # Event classification
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Context (nullable — system events concern no appointment)
    doctor_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)
    appointment_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)
    actor_id: Mapped[str | None] = mapped_column(String(100), comment="Staff member id or 'system'")

    # Event payload
    data: Mapped[dict[str, Any] | None] = mapped_column(JSONB)

    def __repr__(self) -> str:
        return f"<AuditLog event={self.event_type} appointment={self.appointment_id}>"
