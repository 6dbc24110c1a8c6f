"""Appointment model — one booking of a patient with a doctor."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin
from src.models.enums import AppointmentStatus

if TYPE_CHECKING:
    from src.models.doctor import Doctor


class Appointment(TimestampMixin, Base):
    """A patient booked in a doctor's calendar for ``[starts_at, ends_at)``."""

    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_appointments_positive_duration"),
        Index("ix_appointments_doctor_start", "doctor_id", "starts_at"),
    )

    # References (patient and staff records live outside the scheduling core)
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("doctors.id"), nullable=False
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    creator_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, comment="Staff member who made the booking"
    )

    # Scheduling
    starts_at: Mapped[datetime] = mapped_column(DateTime(), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(String(100), default="standard", nullable=False)
    status: Mapped[str] = mapped_column(
        String(30), default=AppointmentStatus.SCHEDULED.value, nullable=False
    )

    # Notes
    notes: Mapped[str | None] = mapped_column(String(1000))

    # Relationships
    doctor: Mapped[Doctor] = relationship("Doctor", back_populates="appointments")

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.duration_minutes)

    @property
    def status_enum(self) -> AppointmentStatus:
        return AppointmentStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.status_enum.is_active

    @property
    def is_cancelled(self) -> bool:
        return self.status_enum.is_cancelled

    @property
    def is_completed(self) -> bool:
        return self.status_enum.is_completed

    def is_future(self, now: datetime) -> bool:
        return self.starts_at > now

    def is_on(self, day: date) -> bool:
        return self.starts_at.date() == day

    def touch(self, now: datetime) -> None:
        """Refresh the audit timestamp after a mutation."""
        self.updated_at = now

    def __repr__(self) -> str:
        return (
            f"<Appointment id={self.id} doctor={self.doctor_id} "
            f"at={self.starts_at} ({self.duration_minutes} min) status={self.status}>"
        )
