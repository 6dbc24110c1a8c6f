"""Pydantic schemas for the booking workflow and its HTTP adapter.

Pure data classes — no business logic.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, NaiveDatetime

from src.config import settings
from src.models.enums import AppointmentStatus


class BookingRequest(BaseModel):
    """A request to put a patient in a doctor's calendar."""

    doctor_id: uuid.UUID
    patient_id: uuid.UUID
    creator_id: uuid.UUID = Field(description="Staff member making the booking")
    starts_at: NaiveDatetime
    duration_minutes: int = Field(default_factory=lambda: settings.scheduling.default_duration_minutes)
    kind: str = "standard"
    notes: str | None = None


class RescheduleRequest(BaseModel):
    starts_at: NaiveDatetime
    duration_minutes: int


class StatusChangeRequest(BaseModel):
    status: AppointmentStatus


class CancelRequest(BaseModel):
    by_patient: bool = True


class AppointmentOut(BaseModel):
    """Serialized appointment returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    doctor_id: uuid.UUID
    patient_id: uuid.UUID
    creator_id: uuid.UUID
    starts_at: datetime
    ends_at: datetime
    duration_minutes: int
    kind: str
    status: AppointmentStatus
    notes: str | None = None


class SlotsResponse(BaseModel):
    doctor_id: uuid.UUID
    day: date
    step_minutes: int
    slots: list[str]


class ConflictResponse(BaseModel):
    doctor_id: uuid.UUID
    conflict: bool


class PlanningDay(BaseModel):
    day: date
    label: str
    count: int
    appointments: list[AppointmentOut]


class PlanningResponse(BaseModel):
    doctor_id: uuid.UUID
    week_start: date
    week_end: date
    days: list[PlanningDay]


class DayPlanningResponse(BaseModel):
    """One doctor's day: every appointment plus the earliest bookable slot."""

    doctor_id: uuid.UUID
    day: date
    label: str
    count: int
    first_free: str | None
    appointments: list[AppointmentOut]


class MonthOverviewResponse(BaseModel):
    doctor_id: uuid.UUID
    year: int
    month: int
    days: list[int]


class DoctorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    full_name: str
    specialty: str | None = None


class AvailableDoctorsResponse(BaseModel):
    starts_at: datetime
    duration_minutes: int
    doctors: list[DoctorOut]


class BookingOptions(BaseModel):
    """Choices offered by booking forms."""

    durations: list[int]
    default_duration_minutes: int
    kinds: list[str]
    slot_step_minutes: int
    day_start: str
    day_end: str
