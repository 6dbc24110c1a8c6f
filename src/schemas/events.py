"""SystemEvent schema — the event type that flows out of the booking workflow.

Every calendar mutation emits a SystemEvent. Subscribers (audit logger,
notification collaborators) consume these events asynchronously.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system."""

    # Appointments
    APPOINTMENT_BOOKED = "appointment.booked"
    APPOINTMENT_RESCHEDULED = "appointment.rescheduled"
    APPOINTMENT_STATUS_CHANGED = "appointment.status_changed"
    APPOINTMENT_CANCELLED = "appointment.cancelled"
    APPOINTMENT_REJECTED = "appointment.rejected"

    # System
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"


class SystemEvent(BaseModel):
    """Immutable record of something that happened to a doctor's calendar."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=datetime.now)

    # Context (optional — system events have no doctor)
    doctor_id: uuid.UUID | None = None
    appointment_id: uuid.UUID | None = None
    actor_id: str | None = None

    # Flexible payload
    data: dict[str, Any] = Field(default_factory=dict)

    # Metadata
    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
