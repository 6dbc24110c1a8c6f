"""Tests for the booking service.

Covers:
- Booking: validation, missing doctor, conflict rejection, event emission
- Exclusion-constraint violations reported as conflicts
- Rescheduling with self-exclusion
- Status changes, re-activation re-check, cancellation
- Read paths (slots, conflict check, weekly planning, counts)
- Concurrent bookings for the same doctor
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import date, datetime, time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from src.models import Appointment, Doctor
from src.models.enums import AppointmentStatus
from src.scheduling.errors import (
    AppointmentNotFound,
    AppointmentValidationError,
    ConflictDetected,
    DoctorNotFound,
    InvalidInterval,
)
from src.scheduling.locks import DoctorLocks
from src.scheduling.service import BookingService
from src.schemas.events import EventType
from src.schemas.scheduling import BookingRequest

NOW = datetime(2024, 6, 1, 8, 0)


# ── Helpers ──────────────────────────────────────────────────────────


def _make_db() -> AsyncMock:
    db = AsyncMock()
    db.add = MagicMock()
    return db


def _make_doctor(hours: str = "monday:09:00-12:00") -> Doctor:
    return Doctor(id=uuid.uuid4(), full_name="Dr. Moreau", working_hours_text=hours)


def _make_appointment(
    doctor_id: uuid.UUID,
    start: datetime,
    minutes: int = 30,
    status: AppointmentStatus = AppointmentStatus.SCHEDULED,
) -> Appointment:
    return Appointment(
        id=uuid.uuid4(),
        doctor_id=doctor_id,
        patient_id=uuid.uuid4(),
        creator_id=uuid.uuid4(),
        starts_at=start,
        duration_minutes=minutes,
        kind="standard",
        status=status.value,
        created_at=NOW,
        updated_at=NOW,
    )


def _request(doctor_id: uuid.UUID, start: datetime, minutes: int = 30) -> BookingRequest:
    return BookingRequest(
        doctor_id=doctor_id,
        patient_id=uuid.uuid4(),
        creator_id=uuid.uuid4(),
        starts_at=start,
        duration_minutes=minutes,
    )


def _service() -> BookingService:
    return BookingService(locks=DoctorLocks(), clock=lambda: NOW)


# ── Booking ──────────────────────────────────────────────────────────


class TestBookAppointment:
    """Test BookingService.book_appointment."""

    @pytest.mark.asyncio()
    async def test_books_free_slot(self):
        service = _service()
        db = _make_db()
        doctor = _make_doctor()
        request = _request(doctor.id, datetime(2024, 6, 10, 9, 0))

        with (
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor) as mock_doctor,
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=[]),
            patch("src.scheduling.service.emit", new_callable=AsyncMock) as mock_emit,
        ):
            appointment = await service.book_appointment(db, request, now=NOW)

        mock_doctor.assert_awaited_once_with(db, doctor.id, for_update=True)
        db.add.assert_called_once_with(appointment)
        db.flush.assert_awaited_once()

        assert appointment.status == AppointmentStatus.SCHEDULED.value
        assert appointment.doctor_id == doctor.id
        assert appointment.patient_id == request.patient_id
        assert appointment.ends_at == datetime(2024, 6, 10, 9, 30)
        assert appointment.updated_at == NOW

        event = mock_emit.call_args.args[0]
        assert event.event_type == EventType.APPOINTMENT_BOOKED
        assert event.appointment_id == appointment.id
        assert event.actor_id == str(request.creator_id)

    @pytest.mark.asyncio()
    async def test_back_to_back_accepted(self):
        service = _service()
        db = _make_db()
        doctor = _make_doctor()
        existing = [_make_appointment(doctor.id, datetime(2024, 6, 10, 9, 0))]

        with (
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=existing),
            patch("src.scheduling.service.emit", new_callable=AsyncMock),
        ):
            appointment = await service.book_appointment(db, _request(doctor.id, datetime(2024, 6, 10, 9, 30)), NOW)

        assert appointment.starts_at == datetime(2024, 6, 10, 9, 30)

    @pytest.mark.asyncio()
    async def test_overlap_rejected(self):
        service = _service()
        db = _make_db()
        doctor = _make_doctor()
        existing = _make_appointment(doctor.id, datetime(2024, 6, 10, 9, 45))

        with (
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=[existing]),
            patch("src.scheduling.service.emit", new_callable=AsyncMock) as mock_emit,
        ):
            with pytest.raises(ConflictDetected) as exc_info:
                await service.book_appointment(db, _request(doctor.id, datetime(2024, 6, 10, 10, 0)), NOW)

        assert exc_info.value.conflicting_ids == [existing.id]
        assert exc_info.value.doctor_id == doctor.id
        db.add.assert_not_called()
        event = mock_emit.call_args.args[0]
        assert event.event_type == EventType.APPOINTMENT_REJECTED

    @pytest.mark.asyncio()
    async def test_start_in_past_rejected(self):
        service = _service()
        with pytest.raises(AppointmentValidationError):
            await service.book_appointment(_make_db(), _request(uuid.uuid4(), datetime(2024, 5, 31, 9, 0)), NOW)

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("minutes", [0, -15])
    async def test_non_positive_duration_rejected(self, minutes):
        service = _service()
        with pytest.raises(InvalidInterval):
            await service.book_appointment(
                _make_db(), _request(uuid.uuid4(), datetime(2024, 6, 10, 9, 0), minutes), NOW
            )

    @pytest.mark.asyncio()
    async def test_overlong_duration_rejected(self):
        service = _service()
        with pytest.raises(AppointmentValidationError):
            await service.book_appointment(
                _make_db(), _request(uuid.uuid4(), datetime(2024, 6, 10, 9, 0), 24 * 60 + 1), NOW
            )

    @pytest.mark.asyncio()
    async def test_unknown_doctor(self):
        service = _service()
        with patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=None):
            with pytest.raises(DoctorNotFound):
                await service.book_appointment(_make_db(), _request(uuid.uuid4(), datetime(2024, 6, 10, 9, 0)), NOW)

    @pytest.mark.asyncio()
    async def test_exclusion_constraint_reported_as_conflict(self):
        service = _service()
        db = _make_db()
        db.flush.side_effect = IntegrityError(
            "INSERT INTO appointments ...", {}, Exception('violates exclusion constraint "ex_appointments_no_overlap"')
        )
        doctor = _make_doctor()

        with (
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=[]),
            patch("src.scheduling.service.emit", new_callable=AsyncMock),
        ):
            with pytest.raises(ConflictDetected):
                await service.book_appointment(db, _request(doctor.id, datetime(2024, 6, 10, 9, 0)), NOW)

    @pytest.mark.asyncio()
    async def test_other_integrity_errors_propagate(self):
        service = _service()
        db = _make_db()
        db.flush.side_effect = IntegrityError("INSERT", {}, Exception("violates foreign key constraint"))
        doctor = _make_doctor()

        with (
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=[]),
            patch("src.scheduling.service.emit", new_callable=AsyncMock),
        ):
            with pytest.raises(IntegrityError):
                await service.book_appointment(db, _request(doctor.id, datetime(2024, 6, 10, 9, 0)), NOW)

    @pytest.mark.asyncio()
    async def test_concurrent_bookings_same_slot(self):
        """Two requests racing for one slot: exactly one wins."""
        service = _service()
        doctor = _make_doctor()
        calendar: list[Appointment] = []
        db = _make_db()
        db.add.side_effect = calendar.append

        async def slow_doctor(*args, **kwargs):
            await asyncio.sleep(0)
            return doctor

        async def current_calendar(*args, **kwargs):
            await asyncio.sleep(0)
            return list(calendar)

        with (
            patch("src.scheduling.queries.get_doctor", side_effect=slow_doctor),
            patch("src.scheduling.queries.list_active_around", side_effect=current_calendar),
            patch("src.scheduling.service.emit", new_callable=AsyncMock),
        ):
            results = await asyncio.gather(
                service.book_appointment(db, _request(doctor.id, datetime(2024, 6, 10, 9, 0)), NOW),
                service.book_appointment(db, _request(doctor.id, datetime(2024, 6, 10, 9, 15)), NOW),
                return_exceptions=True,
            )

        assert len(calendar) == 1
        assert sum(isinstance(r, ConflictDetected) for r in results) == 1


# ── Rescheduling ─────────────────────────────────────────────────────


class TestRescheduleAppointment:
    """Test BookingService.reschedule_appointment."""

    @pytest.mark.asyncio()
    async def test_overlapping_own_slot_allowed(self):
        service = _service()
        db = _make_db()
        doctor = _make_doctor()
        own = _make_appointment(doctor.id, datetime(2024, 6, 10, 9, 0))
        later = datetime(2024, 6, 2, 9, 0)

        with (
            patch("src.scheduling.queries.get_appointment", new_callable=AsyncMock, return_value=own),
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=[own]),
            patch("src.scheduling.service.emit", new_callable=AsyncMock) as mock_emit,
        ):
            result = await service.reschedule_appointment(db, own.id, datetime(2024, 6, 10, 9, 15), 45, now=later)

        assert result.starts_at == datetime(2024, 6, 10, 9, 15)
        assert result.duration_minutes == 45
        assert result.updated_at == later
        event = mock_emit.call_args.args[0]
        assert event.event_type == EventType.APPOINTMENT_RESCHEDULED
        assert event.data["from"] == "2024-06-10T09:00:00"

    @pytest.mark.asyncio()
    async def test_conflict_with_another_leaves_appointment_unchanged(self):
        service = _service()
        db = _make_db()
        doctor = _make_doctor()
        own = _make_appointment(doctor.id, datetime(2024, 6, 10, 9, 0))
        other = _make_appointment(doctor.id, datetime(2024, 6, 10, 11, 0))

        with (
            patch("src.scheduling.queries.get_appointment", new_callable=AsyncMock, return_value=own),
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=[own, other]),
            patch("src.scheduling.service.emit", new_callable=AsyncMock),
        ):
            with pytest.raises(ConflictDetected):
                await service.reschedule_appointment(db, own.id, datetime(2024, 6, 10, 10, 45), 30, NOW)

        assert own.starts_at == datetime(2024, 6, 10, 9, 0)
        db.flush.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_cancelled_appointment_moved_without_check(self):
        service = _service()
        db = _make_db()
        doctor = _make_doctor()
        cancelled = _make_appointment(doctor.id, datetime(2024, 6, 10, 9, 0), status=AppointmentStatus.CANCELLED_BY_CLINIC)

        with (
            patch("src.scheduling.queries.get_appointment", new_callable=AsyncMock, return_value=cancelled),
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock) as mock_around,
            patch("src.scheduling.service.emit", new_callable=AsyncMock),
        ):
            await service.reschedule_appointment(db, cancelled.id, datetime(2024, 6, 11, 9, 0), 30, NOW)

        mock_around.assert_not_awaited()
        assert cancelled.starts_at == datetime(2024, 6, 11, 9, 0)

    @pytest.mark.asyncio()
    async def test_reloaded_inside_critical_section(self):
        """A cancellation committed while waiting for the lock is seen before the check."""
        service = _service()
        db = _make_db()
        doctor = _make_doctor()
        appointment = _make_appointment(doctor.id, datetime(2024, 6, 10, 9, 0))
        mock_doctor = AsyncMock(return_value=doctor)

        async def load(db, appointment_id, *, refresh=False):
            if refresh:
                assert mock_doctor.await_count == 1
                appointment.status = AppointmentStatus.CANCELLED_BY_PATIENT.value
            return appointment

        with (
            patch("src.scheduling.queries.get_appointment", new_callable=AsyncMock, side_effect=load) as mock_get,
            patch("src.scheduling.queries.get_doctor", mock_doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock) as mock_around,
            patch("src.scheduling.service.emit", new_callable=AsyncMock),
        ):
            await service.reschedule_appointment(db, appointment.id, datetime(2024, 6, 11, 9, 0), 30, NOW)

        assert mock_get.await_args_list[-1].kwargs == {"refresh": True}
        mock_around.assert_not_awaited()
        assert appointment.starts_at == datetime(2024, 6, 11, 9, 0)

    @pytest.mark.asyncio()
    async def test_not_found(self):
        service = _service()
        with patch("src.scheduling.queries.get_appointment", new_callable=AsyncMock, return_value=None):
            with pytest.raises(AppointmentNotFound):
                await service.reschedule_appointment(_make_db(), uuid.uuid4(), datetime(2024, 6, 10, 9, 0), 30, NOW)


# ── Status changes ───────────────────────────────────────────────────


class TestStatusChanges:
    """Test BookingService.update_status and cancel_appointment."""

    @pytest.mark.asyncio()
    async def test_confirm(self):
        service = _service()
        db = _make_db()
        appointment = _make_appointment(uuid.uuid4(), datetime(2024, 6, 10, 9, 0))

        with (
            patch("src.scheduling.queries.get_appointment", new_callable=AsyncMock, return_value=appointment),
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=_make_doctor()),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock) as mock_around,
            patch("src.scheduling.service.emit", new_callable=AsyncMock) as mock_emit,
        ):
            result = await service.update_status(db, appointment.id, AppointmentStatus.CONFIRMED, NOW)

        assert result.status == AppointmentStatus.CONFIRMED.value
        mock_around.assert_not_awaited()
        db.flush.assert_awaited_once()
        event = mock_emit.call_args.args[0]
        assert event.event_type == EventType.APPOINTMENT_STATUS_CHANGED
        assert event.data == {"from": "scheduled", "to": "confirmed"}

    @pytest.mark.asyncio()
    async def test_reactivation_blocked_by_newer_booking(self):
        service = _service()
        db = _make_db()
        doctor = _make_doctor()
        cancelled = _make_appointment(doctor.id, datetime(2024, 6, 10, 9, 0), status=AppointmentStatus.CANCELLED_BY_PATIENT)
        replacement = _make_appointment(doctor.id, datetime(2024, 6, 10, 9, 0))

        with (
            patch("src.scheduling.queries.get_appointment", new_callable=AsyncMock, return_value=cancelled),
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=[replacement]),
            patch("src.scheduling.service.emit", new_callable=AsyncMock),
        ):
            with pytest.raises(ConflictDetected):
                await service.update_status(db, cancelled.id, AppointmentStatus.SCHEDULED, NOW)

        assert cancelled.status == AppointmentStatus.CANCELLED_BY_PATIENT.value

    @pytest.mark.asyncio()
    async def test_reactivation_into_free_slot(self):
        service = _service()
        db = _make_db()
        doctor = _make_doctor()
        completed = _make_appointment(doctor.id, datetime(2024, 6, 10, 9, 0), status=AppointmentStatus.COMPLETED)

        with (
            patch("src.scheduling.queries.get_appointment", new_callable=AsyncMock, return_value=completed),
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=[]),
            patch("src.scheduling.service.emit", new_callable=AsyncMock),
        ):
            result = await service.update_status(db, completed.id, AppointmentStatus.SCHEDULED, NOW)

        assert result.is_active

    @pytest.mark.asyncio()
    async def test_status_read_under_lock(self):
        """Confirming an appointment cancelled meanwhile re-checks the calendar."""
        service = _service()
        db = _make_db()
        doctor = _make_doctor()
        appointment = _make_appointment(doctor.id, datetime(2024, 6, 10, 9, 0))
        replacement = _make_appointment(doctor.id, datetime(2024, 6, 10, 9, 0))

        async def load(db, appointment_id, *, refresh=False):
            if refresh:
                appointment.status = AppointmentStatus.CANCELLED_BY_PATIENT.value
            return appointment

        with (
            patch("src.scheduling.queries.get_appointment", new_callable=AsyncMock, side_effect=load),
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=[replacement]),
            patch("src.scheduling.service.emit", new_callable=AsyncMock),
        ):
            with pytest.raises(ConflictDetected):
                await service.update_status(db, appointment.id, AppointmentStatus.CONFIRMED, NOW)

        assert appointment.status == AppointmentStatus.CANCELLED_BY_PATIENT.value
        db.flush.assert_not_awaited()

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        ("by_patient", "expected"),
        [(True, AppointmentStatus.CANCELLED_BY_PATIENT), (False, AppointmentStatus.CANCELLED_BY_CLINIC)],
    )
    async def test_cancel(self, by_patient, expected):
        service = _service()
        db = _make_db()
        appointment = _make_appointment(uuid.uuid4(), datetime(2024, 6, 10, 9, 0))
        later = datetime(2024, 6, 5, 17, 0)

        with (
            patch("src.scheduling.queries.get_appointment", new_callable=AsyncMock, return_value=appointment),
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=_make_doctor()),
            patch("src.scheduling.service.emit", new_callable=AsyncMock) as mock_emit,
        ):
            result = await service.cancel_appointment(db, appointment.id, by_patient, now=later)

        assert result.status == expected.value
        assert result.updated_at == later
        event = mock_emit.call_args.args[0]
        assert event.event_type == EventType.APPOINTMENT_CANCELLED
        assert event.data["by"] == ("patient" if by_patient else "clinic")


# ── Read paths ───────────────────────────────────────────────────────


class TestReadPaths:
    @pytest.mark.asyncio()
    async def test_available_slots(self):
        service = _service()
        doctor = _make_doctor()
        booked = [_make_appointment(doctor.id, datetime(2024, 6, 10, 9, 30))]

        with (
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=booked) as mock_around,
        ):
            slots = await service.available_slots(_make_db(), doctor.id, date(2024, 6, 10), 30)

        assert slots == [time(9, 0), time(10, 0), time(10, 30), time(11, 0), time(11, 30)]
        args = mock_around.call_args.args
        assert args[2:] == (datetime(2024, 6, 10, 0, 0), datetime(2024, 6, 11, 0, 0))

    @pytest.mark.asyncio()
    async def test_available_slots_default_step(self):
        service = _service()
        doctor = _make_doctor("monday:09:00-10:00")

        with (
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=[]),
        ):
            slots = await service.available_slots(_make_db(), doctor.id, date(2024, 6, 10))

        assert slots == [time(9, 0), time(9, 15), time(9, 30), time(9, 45)]

    @pytest.mark.asyncio()
    async def test_available_slots_zero_step_rejected(self):
        service = _service()
        doctor = _make_doctor()

        with (
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=[]),
        ):
            with pytest.raises(InvalidInterval):
                await service.available_slots(_make_db(), doctor.id, date(2024, 6, 10), 0)

    @pytest.mark.asyncio()
    async def test_first_free_slot(self):
        service = _service()
        doctor = _make_doctor()
        booked = [_make_appointment(doctor.id, datetime(2024, 6, 10, 9, 0), minutes=60)]

        with (
            patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=doctor),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=booked),
        ):
            first = await service.first_free_slot(_make_db(), doctor.id, date(2024, 6, 10), 30)
            sunday = await service.first_free_slot(_make_db(), doctor.id, date(2024, 6, 16), 30)

        assert first == time(10, 0)
        assert sunday is None

    @pytest.mark.asyncio()
    async def test_available_doctors(self):
        service = _service()
        free = _make_doctor("monday:09:00-12:00")
        busy = _make_doctor("monday:09:00-12:00")
        off = _make_doctor("tuesday:09:00-12:00")
        booked = {busy.id: [_make_appointment(busy.id, datetime(2024, 6, 10, 9, 45))]}

        async def around(db, doctor_id, start, end):
            return booked.get(doctor_id, [])

        with (
            patch("src.scheduling.queries.list_active_doctors", new_callable=AsyncMock, return_value=[free, busy, off]),
            patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, side_effect=around) as mock_around,
        ):
            doctors = await service.available_doctors(_make_db(), datetime(2024, 6, 10, 9, 30), 30)

        assert doctors == [free]
        assert mock_around.await_count == 2
        assert mock_around.call_args.args[2:] == (datetime(2024, 6, 10, 9, 30), datetime(2024, 6, 10, 10, 0))

    @pytest.mark.asyncio()
    async def test_available_doctors_rejects_zero_duration(self):
        service = _service()
        with pytest.raises(InvalidInterval):
            await service.available_doctors(_make_db(), datetime(2024, 6, 10, 9, 30), 0)

    @pytest.mark.asyncio()
    async def test_daily_planning(self):
        service = _service()
        doctor_id = uuid.uuid4()
        rows = [_make_appointment(doctor_id, datetime(2024, 6, 10, 9, 0))]

        with patch(
            "src.scheduling.queries.list_for_doctor_on_date", new_callable=AsyncMock, return_value=rows
        ) as mock_day:
            assert await service.daily_planning(_make_db(), doctor_id, date(2024, 6, 10)) == rows

        assert mock_day.call_args.args[1:] == (doctor_id, date(2024, 6, 10))

    @pytest.mark.asyncio()
    async def test_month_overview(self):
        service = _service()
        doctor_id = uuid.uuid4()
        rows = [
            _make_appointment(doctor_id, datetime(2024, 2, 29, 9, 0)),
            _make_appointment(doctor_id, datetime(2024, 2, 5, 9, 0)),
            _make_appointment(doctor_id, datetime(2024, 2, 7, 9, 0), status=AppointmentStatus.CANCELLED_BY_CLINIC),
        ]

        with patch(
            "src.scheduling.queries.list_for_doctor_in_range", new_callable=AsyncMock, return_value=rows
        ) as mock_range:
            days = await service.month_overview(_make_db(), doctor_id, 2024, 2)

        assert days == [5, 29]
        assert mock_range.call_args.args[2:] == (date(2024, 2, 1), date(2024, 2, 29))

    @pytest.mark.asyncio()
    async def test_available_slots_unknown_doctor(self):
        service = _service()
        with patch("src.scheduling.queries.get_doctor", new_callable=AsyncMock, return_value=None):
            with pytest.raises(DoctorNotFound):
                await service.available_slots(_make_db(), uuid.uuid4(), date(2024, 6, 10))

    @pytest.mark.asyncio()
    async def test_check_conflict(self):
        service = _service()
        doctor_id = uuid.uuid4()
        existing = [_make_appointment(doctor_id, datetime(2024, 6, 10, 9, 45))]

        with patch("src.scheduling.queries.list_active_around", new_callable=AsyncMock, return_value=existing):
            busy = await service.check_conflict(
                _make_db(), doctor_id, datetime(2024, 6, 10, 10, 0), datetime(2024, 6, 10, 10, 30)
            )
            free = await service.check_conflict(
                _make_db(), doctor_id, datetime(2024, 6, 10, 10, 15), datetime(2024, 6, 10, 10, 45)
            )

        assert busy is True
        assert free is False

    @pytest.mark.asyncio()
    async def test_weekly_planning_normalises_to_monday(self):
        service = _service()
        doctor_id = uuid.uuid4()
        wednesday = _make_appointment(doctor_id, datetime(2024, 6, 12, 9, 0))

        with patch(
            "src.scheduling.queries.list_for_doctor_in_range", new_callable=AsyncMock, return_value=[wednesday]
        ) as mock_range:
            grouped = await service.weekly_planning(_make_db(), doctor_id, date(2024, 6, 14))

        assert mock_range.call_args.args[2:] == (date(2024, 6, 10), date(2024, 6, 16))
        assert list(grouped)[0] == date(2024, 6, 10)
        assert grouped[date(2024, 6, 12)] == [wednesday]

    @pytest.mark.asyncio()
    async def test_count_for_doctor_on_date(self):
        service = _service()
        with patch("src.scheduling.queries.count_for_doctor_on_date", new_callable=AsyncMock, return_value=4):
            assert await service.count_for_doctor_on_date(_make_db(), uuid.uuid4(), date(2024, 6, 10)) == 4

    @pytest.mark.asyncio()
    async def test_get_appointment_not_found(self):
        service = _service()
        with patch("src.scheduling.queries.get_appointment", new_callable=AsyncMock, return_value=None):
            with pytest.raises(AppointmentNotFound):
                await service.get_appointment(_make_db(), uuid.uuid4())
