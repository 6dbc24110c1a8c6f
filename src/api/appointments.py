"""HTTP adapter for the booking workflow — FastAPI router under ``/api``.

Thin layer: parse query/body, call ``booking_service``, serialize. Engine
errors are mapped to status codes by the handlers in
``register_error_handlers``:

    ConflictDetected                        -> 409
    FormatError / InvalidInterval / validation -> 422
    AppointmentNotFound / DoctorNotFound     -> 404
"""
# ruff: noqa: B008  — Depends() in function defaults is standard FastAPI

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.db.engine import get_session
from src.scheduling.errors import (
    AppointmentNotFound,
    AppointmentValidationError,
    ConflictDetected,
    DoctorNotFound,
    FormatError,
    InvalidInterval,
    InvalidTransition,
)
from src.scheduling.planning import count_for
from src.scheduling.service import booking_service
from src.scheduling.timeutils import format_date, format_datetime, format_time, parse_date, parse_datetime
from src.schemas.scheduling import (
    AppointmentOut,
    AvailableDoctorsResponse,
    BookingRequest,
    BookingOptions,
    CancelRequest,
    ConflictResponse,
    DayPlanningResponse,
    DoctorOut,
    MonthOverviewResponse,
    PlanningDay,
    PlanningResponse,
    RescheduleRequest,
    SlotsResponse,
    StatusChangeRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["appointments"])


@router.get("/booking-options", response_model=BookingOptions)
async def get_booking_options() -> BookingOptions:
    """Durations, appointment kinds and the default day offered to booking forms."""
    scheduling = settings.scheduling
    return BookingOptions(
        durations=scheduling.allowed_durations,
        default_duration_minutes=scheduling.default_duration_minutes,
        kinds=scheduling.appointment_kinds,
        slot_step_minutes=scheduling.slot_step_minutes,
        day_start=scheduling.work_start_time,
        day_end=scheduling.work_end_time,
    )


# ── Doctor calendar ──────────────────────────────────────────────────


@router.get("/doctors/available", response_model=AvailableDoctorsResponse)
async def get_available_doctors(
    at: str = Query(..., description="Requested start"),
    duration: int | None = Query(None, gt=0, description="Length in minutes"),
    db: AsyncSession = Depends(get_session),
) -> AvailableDoctorsResponse:
    starts_at = parse_datetime(at)
    duration_minutes = settings.scheduling.default_duration_minutes if duration is None else duration
    doctors = await booking_service.available_doctors(db, starts_at, duration_minutes)
    return AvailableDoctorsResponse(
        starts_at=starts_at,
        duration_minutes=duration_minutes,
        doctors=[DoctorOut.model_validate(d) for d in doctors],
    )


@router.get("/doctors/{doctor_id}/slots", response_model=SlotsResponse)
async def get_slots(
    doctor_id: uuid.UUID,
    date: str = Query(..., description="Day to browse"),
    step: int | None = Query(None, gt=0, description="Slot length in minutes"),
    db: AsyncSession = Depends(get_session),
) -> SlotsResponse:
    day = parse_date(date)
    step_minutes = settings.scheduling.slot_step_minutes if step is None else step
    slots = await booking_service.available_slots(db, doctor_id, day, step_minutes)
    return SlotsResponse(
        doctor_id=doctor_id,
        day=day,
        step_minutes=step_minutes,
        slots=[format_time(t) for t in slots],
    )


@router.get("/doctors/{doctor_id}/conflicts", response_model=ConflictResponse)
async def get_conflict(
    doctor_id: uuid.UUID,
    start: str = Query(...),
    end: str = Query(...),
    exclude_id: uuid.UUID | None = Query(None),
    db: AsyncSession = Depends(get_session),
) -> ConflictResponse:
    conflict = await booking_service.check_conflict(
        db, doctor_id, parse_datetime(start), parse_datetime(end), exclude_id
    )
    return ConflictResponse(doctor_id=doctor_id, conflict=conflict)


@router.get("/doctors/{doctor_id}/planning", response_model=PlanningResponse)
async def get_planning(
    doctor_id: uuid.UUID,
    date: str = Query(..., description="Any day of the week to show"),
    db: AsyncSession = Depends(get_session),
) -> PlanningResponse:
    grouped = await booking_service.weekly_planning(db, doctor_id, parse_date(date))
    days = [
        PlanningDay(
            day=day,
            label=format_date(day),
            count=count_for(doctor_id, day, appointments),
            appointments=[AppointmentOut.model_validate(a) for a in appointments],
        )
        for day, appointments in grouped.items()
    ]
    return PlanningResponse(
        doctor_id=doctor_id,
        week_start=days[0].day,
        week_end=days[-1].day,
        days=days,
    )


@router.get("/doctors/{doctor_id}/day", response_model=DayPlanningResponse)
async def get_day(
    doctor_id: uuid.UUID,
    date: str = Query(..., description="Day to show"),
    step: int | None = Query(None, gt=0, description="Slot length in minutes"),
    db: AsyncSession = Depends(get_session),
) -> DayPlanningResponse:
    day = parse_date(date)
    appointments = await booking_service.daily_planning(db, doctor_id, day)
    first_free = await booking_service.first_free_slot(db, doctor_id, day, step)
    return DayPlanningResponse(
        doctor_id=doctor_id,
        day=day,
        label=format_date(day),
        count=count_for(doctor_id, day, appointments),
        first_free=format_time(first_free) or None,
        appointments=[AppointmentOut.model_validate(a) for a in appointments],
    )


@router.get("/doctors/{doctor_id}/calendar", response_model=MonthOverviewResponse)
async def get_month_overview(
    doctor_id: uuid.UUID,
    year: int = Query(..., ge=1, le=9999),
    month: int = Query(..., ge=1, le=12),
    db: AsyncSession = Depends(get_session),
) -> MonthOverviewResponse:
    days = await booking_service.month_overview(db, doctor_id, year, month)
    return MonthOverviewResponse(doctor_id=doctor_id, year=year, month=month, days=days)


# ── Appointments ─────────────────────────────────────────────────────


@router.post("/appointments", response_model=AppointmentOut, status_code=201)
async def create_appointment(
    body: BookingRequest,
    db: AsyncSession = Depends(get_session),
) -> AppointmentOut:
    appointment = await booking_service.book_appointment(db, body)
    return AppointmentOut.model_validate(appointment)


@router.get("/appointments/{appointment_id}", response_model=AppointmentOut)
async def read_appointment(
    appointment_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
) -> AppointmentOut:
    appointment = await booking_service.get_appointment(db, appointment_id)
    return AppointmentOut.model_validate(appointment)


@router.patch("/appointments/{appointment_id}/schedule", response_model=AppointmentOut)
async def reschedule_appointment(
    appointment_id: uuid.UUID,
    body: RescheduleRequest,
    db: AsyncSession = Depends(get_session),
) -> AppointmentOut:
    appointment = await booking_service.reschedule_appointment(
        db, appointment_id, body.starts_at, body.duration_minutes
    )
    return AppointmentOut.model_validate(appointment)


@router.post("/appointments/{appointment_id}/status", response_model=AppointmentOut)
async def change_status(
    appointment_id: uuid.UUID,
    body: StatusChangeRequest,
    db: AsyncSession = Depends(get_session),
) -> AppointmentOut:
    appointment = await booking_service.update_status(db, appointment_id, body.status)
    return AppointmentOut.model_validate(appointment)


@router.post("/appointments/{appointment_id}/cancel", response_model=AppointmentOut)
async def cancel_appointment(
    appointment_id: uuid.UUID,
    body: CancelRequest,
    db: AsyncSession = Depends(get_session),
) -> AppointmentOut:
    appointment = await booking_service.cancel_appointment(db, appointment_id, body.by_patient)
    return AppointmentOut.model_validate(appointment)


# ── Error mapping ────────────────────────────────────────────────────


async def _conflict_handler(request: Request, exc: ConflictDetected) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "detail": (
                f"Slot unavailable: {format_datetime(exc.starts_at)}-{format_time(exc.ends_at.time())} "
                "overlaps another appointment of the doctor"
            ),
            "conflicting_ids": [str(i) for i in exc.conflicting_ids],
        },
    )


async def _unprocessable_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


async def _not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    """Map scheduling errors to HTTP responses on ``app``."""
    app.add_exception_handler(ConflictDetected, _conflict_handler)
    for exc_type in (FormatError, InvalidInterval, AppointmentValidationError, InvalidTransition):
        app.add_exception_handler(exc_type, _unprocessable_handler)
    for exc_type in (AppointmentNotFound, DoctorNotFound):
        app.add_exception_handler(exc_type, _not_found_handler)
