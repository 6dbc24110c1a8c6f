"""Booking service — create, move, re-status and cancel appointments.

Wraps the pure engine (conflicts, availability, planning) with persistence:
fetch the doctor's appointments, decide, write, and notify subscribers via
the event system.

Check-then-insert for one doctor runs inside a critical section: the
per-doctor lock backend, plus a row lock on the doctor held until the
surrounding transaction commits. The exclusion constraint on the
appointments table is the last line; its violation is reported as a
conflict like any other.
"""

from __future__ import annotations

import calendar
import logging
import uuid
from collections.abc import Callable
from datetime import date, datetime, time, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.events import emit
from src.models.appointment import Appointment
from src.models.doctor import Doctor
from src.models.enums import AppointmentStatus
from src.scheduling import queries
from src.scheduling.availability import available_slots, first_available_slot
from src.scheduling.conflicts import find_conflicts, has_conflict
from src.scheduling.errors import (
    AppointmentNotFound,
    AppointmentValidationError,
    ConflictDetected,
    DoctorNotFound,
    InvalidInterval,
)
from src.scheduling.lifecycle import cancellation_status, ensure_transition, reactivates
from src.scheduling.locks import DoctorLockBackend, build_lock_backend
from src.scheduling.planning import days_with_appointments, group_by_day
from src.scheduling.timeutils import combine, first_day_of_week, last_day_of_week
from src.scheduling.working_hours import is_working_at
from src.schemas.events import EventType, SystemEvent
from src.schemas.scheduling import BookingRequest

logger = logging.getLogger(__name__)

NO_OVERLAP_CONSTRAINT = "ex_appointments_no_overlap"


class BookingService:
    """Manages a clinic's appointment calendar."""

    def __init__(
        self,
        locks: DoctorLockBackend | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._locks = locks or build_lock_backend()
        self._clock = clock

    # ── Queries ──────────────────────────────────────────────────────

    async def check_conflict(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
        starts_at: datetime,
        ends_at: datetime,
        exclude_id: uuid.UUID | None = None,
    ) -> bool:
        """Would ``[starts_at, ends_at)`` collide with another active appointment?"""
        existing = await queries.list_active_around(db, doctor_id, starts_at, ends_at)
        return has_conflict(doctor_id, starts_at, ends_at, existing, exclude_id)

    async def available_slots(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
        day: date,
        step_minutes: int | None = None,
    ) -> list[time]:
        """Free slot start times for a doctor on a date."""
        doctor = await self._require_doctor(db, doctor_id)
        existing = await self._active_on_day(db, doctor_id, day)
        return available_slots(doctor, day, existing, self._step(step_minutes))

    async def first_free_slot(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
        day: date,
        step_minutes: int | None = None,
    ) -> time | None:
        doctor = await self._require_doctor(db, doctor_id)
        existing = await self._active_on_day(db, doctor_id, day)
        return first_available_slot(doctor, day, existing, self._step(step_minutes))

    async def available_doctors(
        self,
        db: AsyncSession,
        starts_at: datetime,
        duration_minutes: int | None = None,
    ) -> list[Doctor]:
        """Active doctors working at ``starts_at`` with no booking over the interval."""
        if duration_minutes is None:
            duration_minutes = settings.scheduling.default_duration_minutes
        if duration_minutes <= 0:
            msg = f"Duration must be positive, got {duration_minutes} minutes"
            raise InvalidInterval(msg)
        ends_at = starts_at + timedelta(minutes=duration_minutes)

        free: list[Doctor] = []
        for doctor in await queries.list_active_doctors(db):
            if not is_working_at(doctor.working_hours, starts_at):
                continue
            existing = await queries.list_active_around(db, doctor.id, starts_at, ends_at)
            if not has_conflict(doctor.id, starts_at, ends_at, existing):
                free.append(doctor)

        logger.debug("Doctors free at %s (%d min): %d", starts_at, duration_minutes, len(free))
        return free

    async def weekly_planning(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
        day: date,
    ) -> dict[date, list[Appointment]]:
        """The Monday-to-Sunday week containing ``day``, grouped by date."""
        week_start = first_day_of_week(day)
        appointments = await queries.list_for_doctor_in_range(
            db, doctor_id, week_start, last_day_of_week(day)
        )
        return group_by_day(appointments, week_start)

    async def daily_planning(self, db: AsyncSession, doctor_id: uuid.UUID, day: date) -> list[Appointment]:
        """Every appointment of the doctor on ``day``, any status, by start time."""
        return await queries.list_for_doctor_on_date(db, doctor_id, day)

    async def month_overview(self, db: AsyncSession, doctor_id: uuid.UUID, year: int, month: int) -> list[int]:
        """Day-of-month numbers with at least one non-cancelled appointment."""
        last_day = calendar.monthrange(year, month)[1]
        appointments = await queries.list_for_doctor_in_range(
            db, doctor_id, date(year, month, 1), date(year, month, last_day)
        )
        return days_with_appointments(doctor_id, year, month, appointments)

    async def count_for_doctor_on_date(self, db: AsyncSession, doctor_id: uuid.UUID, day: date) -> int:
        return await queries.count_for_doctor_on_date(db, doctor_id, day)

    async def get_appointment(
        self, db: AsyncSession, appointment_id: uuid.UUID, *, refresh: bool = False
    ) -> Appointment:
        appointment = await queries.get_appointment(db, appointment_id, refresh=refresh)
        if appointment is None:
            msg = f"Appointment {appointment_id} not found"
            raise AppointmentNotFound(msg)
        return appointment

    # ── Mutations ────────────────────────────────────────────────────

    async def book_appointment(
        self,
        db: AsyncSession,
        request: BookingRequest,
        now: datetime | None = None,
    ) -> Appointment:
        """Create a SCHEDULED appointment if the doctor is free.

        Raises:
            InvalidInterval: Non-positive duration.
            AppointmentValidationError: Start in the past or duration too long.
            DoctorNotFound: Unknown doctor.
            ConflictDetected: The interval overlaps an active appointment.
        """
        now = now or self._clock()
        ends_at = self._validate_interval(request.starts_at, request.duration_minutes, now)

        async with self._locks.hold(request.doctor_id):
            await self._require_doctor(db, request.doctor_id, for_update=True)
            await self._ensure_free(
                db, request.doctor_id, request.starts_at, ends_at, exclude_id=None, actor=request.creator_id
            )

            appointment = Appointment(
                id=uuid.uuid4(),
                doctor_id=request.doctor_id,
                patient_id=request.patient_id,
                creator_id=request.creator_id,
                starts_at=request.starts_at,
                duration_minutes=request.duration_minutes,
                kind=request.kind,
                status=AppointmentStatus.SCHEDULED.value,
                notes=request.notes,
                created_at=now,
                updated_at=now,
            )
            db.add(appointment)
            await self._flush(db, appointment)

        await emit(self._event(
            EventType.APPOINTMENT_BOOKED,
            appointment,
            actor=request.creator_id,
            data={
                "starts_at": appointment.starts_at.isoformat(),
                "duration_minutes": appointment.duration_minutes,
                "kind": appointment.kind,
            },
        ))

        logger.info(
            "Appointment booked: id=%s doctor=%s at=%s (%d min)",
            appointment.id,
            appointment.doctor_id,
            appointment.starts_at,
            appointment.duration_minutes,
        )
        return appointment

    async def reschedule_appointment(
        self,
        db: AsyncSession,
        appointment_id: uuid.UUID,
        starts_at: datetime,
        duration_minutes: int,
        now: datetime | None = None,
    ) -> Appointment:
        """Move an appointment; it never conflicts with its own previous slot."""
        now = now or self._clock()
        ends_at = self._validate_interval(starts_at, duration_minutes, now)
        appointment = await self.get_appointment(db, appointment_id)

        async with self._locks.hold(appointment.doctor_id):
            await self._require_doctor(db, appointment.doctor_id, for_update=True)
            # Re-read under the lock
            appointment = await self.get_appointment(db, appointment_id, refresh=True)
            previous = appointment.starts_at
            if appointment.is_active:
                await self._ensure_free(
                    db, appointment.doctor_id, starts_at, ends_at, exclude_id=appointment.id
                )
            appointment.starts_at = starts_at
            appointment.duration_minutes = duration_minutes
            appointment.touch(now)
            await self._flush(db, appointment)

        await emit(self._event(
            EventType.APPOINTMENT_RESCHEDULED,
            appointment,
            data={
                "from": previous.isoformat(),
                "to": starts_at.isoformat(),
                "duration_minutes": duration_minutes,
            },
        ))

        logger.info("Appointment rescheduled: id=%s %s -> %s", appointment.id, previous, starts_at)
        return appointment

    async def update_status(
        self,
        db: AsyncSession,
        appointment_id: uuid.UUID,
        status: AppointmentStatus,
        now: datetime | None = None,
    ) -> Appointment:
        """Set any status; putting an appointment back in the calendar re-checks conflicts."""
        appointment, previous = await self._change_status(db, appointment_id, status, now)
        await emit(self._event(
            EventType.APPOINTMENT_STATUS_CHANGED,
            appointment,
            data={"from": previous.value, "to": status.value},
        ))
        logger.info(
            "Appointment status changed: id=%s %s -> %s", appointment.id, previous.value, status.value
        )
        return appointment

    async def cancel_appointment(
        self,
        db: AsyncSession,
        appointment_id: uuid.UUID,
        by_patient: bool,
        now: datetime | None = None,
    ) -> Appointment:
        """Cancel on behalf of the patient or the clinic; the slot becomes free."""
        status = cancellation_status(by_patient)
        appointment, previous = await self._change_status(db, appointment_id, status, now)
        await emit(self._event(
            EventType.APPOINTMENT_CANCELLED,
            appointment,
            data={"from": previous.value, "by": "patient" if by_patient else "clinic"},
        ))
        logger.info("Appointment cancelled: id=%s by=%s", appointment.id, "patient" if by_patient else "clinic")
        return appointment

    # ── Internals ────────────────────────────────────────────────────

    async def _change_status(
        self,
        db: AsyncSession,
        appointment_id: uuid.UUID,
        status: AppointmentStatus,
        now: datetime | None,
    ) -> tuple[Appointment, AppointmentStatus]:
        now = now or self._clock()
        appointment = await self.get_appointment(db, appointment_id)

        async with self._locks.hold(appointment.doctor_id):
            await self._require_doctor(db, appointment.doctor_id, for_update=True)
            appointment = await self.get_appointment(db, appointment_id, refresh=True)
            previous = appointment.status_enum
            ensure_transition(previous, status)
            if reactivates(previous, status):
                await self._ensure_free(
                    db, appointment.doctor_id, appointment.starts_at, appointment.ends_at,
                    exclude_id=appointment.id,
                )
            appointment.status = status.value
            appointment.touch(now)
            await self._flush(db, appointment)

        return appointment, previous

    @staticmethod
    def _step(step_minutes: int | None) -> int:
        return settings.scheduling.slot_step_minutes if step_minutes is None else step_minutes

    @staticmethod
    async def _active_on_day(db: AsyncSession, doctor_id: uuid.UUID, day: date) -> list[Appointment]:
        day_start = combine(day, time.min)
        return await queries.list_active_around(db, doctor_id, day_start, day_start + timedelta(days=1))

    @staticmethod
    def _validate_interval(starts_at: datetime, duration_minutes: int, now: datetime) -> datetime:
        """Check a requested interval and return its end."""
        if duration_minutes <= 0:
            msg = f"Duration must be positive, got {duration_minutes} minutes"
            raise InvalidInterval(msg)
        if duration_minutes > settings.scheduling.max_duration_minutes:
            msg = (
                f"Duration {duration_minutes} min exceeds the maximum of "
                f"{settings.scheduling.max_duration_minutes} min"
            )
            raise AppointmentValidationError(msg)
        if starts_at < now:
            msg = f"Appointment cannot start in the past ({starts_at:%Y-%m-%d %H:%M})"
            raise AppointmentValidationError(msg)
        return starts_at + timedelta(minutes=duration_minutes)

    async def _require_doctor(
        self, db: AsyncSession, doctor_id: uuid.UUID, *, for_update: bool = False
    ) -> Doctor:
        doctor = await queries.get_doctor(db, doctor_id, for_update=for_update)
        if doctor is None:
            msg = f"Doctor {doctor_id} not found"
            raise DoctorNotFound(msg)
        return doctor

    async def _ensure_free(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
        starts_at: datetime,
        ends_at: datetime,
        exclude_id: uuid.UUID | None,
        actor: uuid.UUID | None = None,
    ) -> None:
        existing = await queries.list_active_around(db, doctor_id, starts_at, ends_at)
        clashes = find_conflicts(doctor_id, starts_at, ends_at, existing, exclude_id)
        if not clashes:
            return

        conflicting_ids = [a.id for a in clashes]
        logger.info(
            "Booking rejected: doctor=%s %s-%s overlaps %s",
            doctor_id, starts_at, ends_at, conflicting_ids,
        )
        await emit(SystemEvent(
            event_type=EventType.APPOINTMENT_REJECTED,
            doctor_id=doctor_id,
            appointment_id=exclude_id,
            actor_id=str(actor) if actor else None,
            data={
                "starts_at": starts_at.isoformat(),
                "ends_at": ends_at.isoformat(),
                "conflicting_ids": [str(i) for i in conflicting_ids],
            },
            source_module="scheduling.service",
        ))
        raise ConflictDetected(doctor_id, starts_at, ends_at, conflicting_ids)

    @staticmethod
    async def _flush(db: AsyncSession, appointment: Appointment) -> None:
        """Flush, translating an exclusion-constraint violation into a conflict."""
        try:
            await db.flush()
        except IntegrityError as exc:
            if NO_OVERLAP_CONSTRAINT not in str(exc.orig):
                raise
            raise ConflictDetected(
                appointment.doctor_id, appointment.starts_at, appointment.ends_at
            ) from exc

    @staticmethod
    def _event(
        event_type: EventType,
        appointment: Appointment,
        actor: uuid.UUID | None = None,
        data: dict[str, object] | None = None,
    ) -> SystemEvent:
        return SystemEvent(
            event_type=event_type,
            doctor_id=appointment.doctor_id,
            appointment_id=appointment.id,
            actor_id=str(actor) if actor else None,
            data=data or {},
            source_module="scheduling.service",
        )


# Module-level singleton
booking_service = BookingService()
