"""Tests for the appointment and doctor lookups.

Covers:
- Scalar lookups, row locking and session refresh
- Range listings and the conflict look-back window
- Daily count
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config import settings
from src.scheduling import queries


def _db_returning(**configure) -> AsyncMock:
    db = AsyncMock()
    result = MagicMock()
    result.configure_mock(**configure)
    db.execute.return_value = result
    return db


class TestLookups:
    @pytest.mark.asyncio()
    async def test_get_doctor_for_update(self):
        doctor = MagicMock()
        db = _db_returning(**{"scalar_one_or_none.return_value": doctor})

        assert await queries.get_doctor(db, uuid.uuid4(), for_update=True) is doctor

        statement = db.execute.call_args.args[0]
        assert "FOR UPDATE" in str(statement)

    @pytest.mark.asyncio()
    async def test_get_appointment_missing(self):
        db = _db_returning(**{"scalar_one_or_none.return_value": None})
        assert await queries.get_appointment(db, uuid.uuid4()) is None

    @pytest.mark.asyncio()
    async def test_get_appointment_refresh_overwrites_session_copy(self):
        db = _db_returning(**{"scalar_one_or_none.return_value": MagicMock()})

        await queries.get_appointment(db, uuid.uuid4(), refresh=True)

        statement = db.execute.call_args.args[0]
        assert statement.get_execution_options()["populate_existing"] is True

    @pytest.mark.asyncio()
    async def test_list_active_doctors(self):
        doctors = [MagicMock(), MagicMock()]
        db = _db_returning(**{"scalars.return_value.all.return_value": doctors})

        assert await queries.list_active_doctors(db) == doctors
        assert "doctors.is_active" in str(db.execute.call_args.args[0])


class TestListings:
    @pytest.mark.asyncio()
    async def test_list_for_doctor_on_date(self):
        rows = [MagicMock(), MagicMock()]
        db = _db_returning(**{"scalars.return_value.all.return_value": rows})

        result = await queries.list_for_doctor_on_date(db, uuid.uuid4(), date(2024, 6, 10))

        assert result == rows
        db.execute.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_list_for_doctor_in_range_empty(self):
        db = _db_returning(**{"scalars.return_value.all.return_value": []})
        assert await queries.list_for_doctor_in_range(db, uuid.uuid4(), date(2024, 6, 10), date(2024, 6, 16)) == []

    @pytest.mark.asyncio()
    async def test_active_around_reaches_back_by_max_duration(self, monkeypatch):
        monkeypatch.setattr(settings.scheduling, "max_duration_minutes", 2880)
        db = _db_returning(**{"scalars.return_value.all.return_value": []})

        await queries.list_active_around(db, uuid.uuid4(), datetime(2030, 6, 11, 12, 0), datetime(2030, 6, 11, 12, 30))

        params = db.execute.call_args.args[0].compile().params
        # A 48h appointment starting 2030-06-10 00:00 still runs at 12:00 the next day
        assert datetime(2030, 6, 9, 12, 0) in params.values()
        assert datetime(2030, 6, 10, 12, 0) not in params.values()

    @pytest.mark.asyncio()
    async def test_active_around_default_window(self):
        db = _db_returning(**{"scalars.return_value.all.return_value": []})

        await queries.list_active_around(db, uuid.uuid4(), datetime(2030, 6, 11, 12, 0), datetime(2030, 6, 11, 12, 30))

        params = db.execute.call_args.args[0].compile().params
        lower = datetime(2030, 6, 11, 12, 0) - timedelta(minutes=settings.scheduling.max_duration_minutes)
        assert lower in params.values()


class TestCount:
    @pytest.mark.asyncio()
    async def test_count(self):
        db = _db_returning(**{"scalar.return_value": 3})
        assert await queries.count_for_doctor_on_date(db, uuid.uuid4(), date(2024, 6, 10)) == 3

    @pytest.mark.asyncio()
    async def test_count_none_is_zero(self):
        db = _db_returning(**{"scalar.return_value": None})
        assert await queries.count_for_doctor_on_date(db, uuid.uuid4(), date(2024, 6, 10)) == 0
