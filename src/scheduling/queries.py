"""Appointment and doctor lookups used by the booking workflow.

These are the repository capability the engine consumes: they fetch
already-persisted rows, the pure engine functions do the rest.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.models.appointment import Appointment
from src.models.doctor import Doctor
from src.models.enums import ACTIVE_STATUSES, CANCELLED_STATUSES

logger = logging.getLogger(__name__)

_ACTIVE_VALUES = [s.value for s in ACTIVE_STATUSES]
_CANCELLED_VALUES = [s.value for s in CANCELLED_STATUSES]


def _day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """``[start 00:00, end+1 00:00)`` for an inclusive date range."""
    return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)


async def get_doctor(db: AsyncSession, doctor_id: uuid.UUID, *, for_update: bool = False) -> Doctor | None:
    """Load a doctor, optionally taking a row lock until the transaction ends."""
    query = select(Doctor).where(Doctor.id == doctor_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_appointment(
    db: AsyncSession, appointment_id: uuid.UUID, *, refresh: bool = False
) -> Appointment | None:
    """Load an appointment; ``refresh`` overwrites the copy already in the session."""
    query = select(Appointment).where(Appointment.id == appointment_id)
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def list_active_doctors(db: AsyncSession) -> list[Doctor]:
    result = await db.execute(
        select(Doctor).where(Doctor.is_active.is_(True)).order_by(Doctor.full_name)
    )
    return list(result.scalars().all())


async def list_for_doctor_in_range(
    db: AsyncSession,
    doctor_id: uuid.UUID,
    start: date,
    end: date,
) -> list[Appointment]:
    """All appointments of a doctor starting between two dates (inclusive), by start time."""
    lower, upper = _day_bounds(start, end)
    result = await db.execute(
        select(Appointment)
        .where(
            Appointment.doctor_id == doctor_id,
            Appointment.starts_at >= lower,
            Appointment.starts_at < upper,
        )
        .order_by(Appointment.starts_at)
    )
    return list(result.scalars().all())


async def list_for_doctor_on_date(db: AsyncSession, doctor_id: uuid.UUID, day: date) -> list[Appointment]:
    return await list_for_doctor_in_range(db, doctor_id, day, day)


async def list_active_around(
    db: AsyncSession,
    doctor_id: uuid.UUID,
    start: datetime,
    end: datetime,
) -> list[Appointment]:
    """Active appointments of a doctor that could overlap ``[start, end)``.

    Appointment end is derived, so the window reaches back by the longest
    allowed duration; the conflict detector does the exact interval test.
    """
    result = await db.execute(
        select(Appointment)
        .where(
            Appointment.doctor_id == doctor_id,
            Appointment.status.in_(_ACTIVE_VALUES),
            Appointment.starts_at < end,
            Appointment.starts_at > start - timedelta(minutes=settings.scheduling.max_duration_minutes),
        )
        .order_by(Appointment.starts_at)
    )
    return list(result.scalars().all())


async def count_for_doctor_on_date(db: AsyncSession, doctor_id: uuid.UUID, day: date) -> int:
    """Non-cancelled appointments of a doctor on a date."""
    lower, upper = _day_bounds(day, day)
    result = await db.execute(
        select(func.count(Appointment.id)).where(
            Appointment.doctor_id == doctor_id,
            Appointment.starts_at >= lower,
            Appointment.starts_at < upper,
            Appointment.status.not_in(_CANCELLED_VALUES),
        )
    )
    return result.scalar() or 0
