"""Doctor model — the calendar owner and holder of the working-hours string."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin
from src.scheduling.working_hours import decode, encode

if TYPE_CHECKING:
    from src.models.appointment import Appointment
    from src.schemas.working_hours import WorkingHours


class Doctor(TimestampMixin, Base):
    """A practitioner whose calendar the clinic books into."""

    __tablename__ = "doctors"

    # Profile
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    specialty: Mapped[str | None] = mapped_column(String(100))
    professional_phone: Mapped[str | None] = mapped_column(String(20))

    # Stored as "monday:09:00-12:30,14:00-18:00;tuesday:..." for compatibility
    working_hours_text: Mapped[str | None] = mapped_column(
        Text, comment="day:HH:MM-HH:MM,...;day:..."
    )

    # Active flag
    is_active: Mapped[bool] = mapped_column(default=True)

    # Relationships
    appointments: Mapped[list[Appointment]] = relationship("Appointment", back_populates="doctor")

    @property
    def working_hours(self) -> WorkingHours:
        return decode(self.working_hours_text)

    @working_hours.setter
    def working_hours(self, value: WorkingHours) -> None:
        self.working_hours_text = encode(value)

    def __repr__(self) -> str:
        return f"<Doctor name={self.full_name} specialty={self.specialty} active={self.is_active}>"
