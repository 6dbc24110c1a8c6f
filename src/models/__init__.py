"""SQLAlchemy ORM models for the clinic scheduler.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from src.models.appointment import Appointment
from src.models.audit import AuditLog
from src.models.base import Base
from src.models.doctor import Doctor
from src.models.enums import AppointmentStatus

__all__ = [
    # Base
    "Base",
    # Models
    "Doctor",
    "Appointment",
    "AuditLog",
    # Enums
    "AppointmentStatus",
]
