"""Holiday directory tests — CRUD, range lookups, and the /holidays endpoints."""

from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.common.audit import get_audit_history
from leave_tracker.common.constants import HolidayType
from leave_tracker.common.exceptions import (
    ConflictError,
    NotFoundException,
    ValidationException,
)
from leave_tracker.holidays.schemas import HolidayCreate, HolidayUpdate
from leave_tracker.holidays.service import HolidayService
from tests.conftest import auth_headers_for


async def _seed(db: AsyncSession, on: date, name: str = "Holiday", **kwargs):
    return await HolidayService.create_holiday(
        db, HolidayCreate(name=name, date=on, **kwargs),
    )


class TestHolidayService:

    async def test_create_and_get(self, db: AsyncSession, org):
        created = await HolidayService.create_holiday(
            db,
            HolidayCreate(name=" Republic Day ", date=date(2030, 1, 26)),
            actor_id=org["admin"].id,
        )
        assert created.name == "Republic Day"
        assert created.holiday_type == HolidayType.national

        fetched = await HolidayService.get_holiday(db, created.id)
        assert fetched.date == date(2030, 1, 26)

        history = await get_audit_history(db, "holiday", created.id)
        assert history[0].new_values["date"] == "2030-01-26"

    async def test_one_holiday_per_date(self, db: AsyncSession):
        await _seed(db, date(2030, 8, 15))
        with pytest.raises(ConflictError):
            await _seed(db, date(2030, 8, 15), name="Duplicate")

    async def test_holiday_dates_in_inclusive_range(self, db: AsyncSession):
        for day in (date(2030, 3, 1), date(2030, 3, 15), date(2030, 3, 31), date(2030, 4, 1)):
            await _seed(db, day, name=f"H{day.isoformat()}")

        dates = await HolidayService.get_holiday_dates(db, date(2030, 3, 1), date(2030, 3, 31))
        assert dates == {date(2030, 3, 1), date(2030, 3, 15), date(2030, 3, 31)}

    async def test_list_by_year_and_month(self, db: AsyncSession):
        await _seed(db, date(2030, 2, 10), name="Feb")
        await _seed(db, date(2030, 12, 25), name="Xmas", holiday_type=HolidayType.company)
        await _seed(db, date(2031, 1, 1), name="New Year")

        assert [h.name for h in await HolidayService.list_holidays(db, year=2030)] == [
            "Feb", "Xmas",
        ]
        assert [h.name for h in await HolidayService.list_holidays(db, year=2030, month=2)] == [
            "Feb",
        ]
        assert len(await HolidayService.list_holidays(db)) == 3

    async def test_month_requires_year(self, db: AsyncSession):
        with pytest.raises(ValidationException):
            await HolidayService.list_holidays(db, month=5)

    async def test_update_holiday(self, db: AsyncSession):
        created = await _seed(db, date(2030, 5, 1), name="Labour Day")
        updated = await HolidayService.update_holiday(
            db, created.id,
            HolidayUpdate(date=date(2030, 5, 2), holiday_type=HolidayType.regional),
        )
        assert updated.date == date(2030, 5, 2)
        assert updated.holiday_type == HolidayType.regional
        assert updated.name == "Labour Day"

    async def test_update_to_taken_date(self, db: AsyncSession):
        await _seed(db, date(2030, 6, 1), name="A")
        second = await _seed(db, date(2030, 6, 2), name="B")
        with pytest.raises(ConflictError):
            await HolidayService.update_holiday(db, second.id, HolidayUpdate(date=date(2030, 6, 1)))

    async def test_delete_holiday(self, db: AsyncSession):
        created = await _seed(db, date(2030, 7, 4))
        await HolidayService.delete_holiday(db, created.id)

        with pytest.raises(NotFoundException):
            await HolidayService.get_holiday(db, created.id)
        history = await get_audit_history(db, "holiday", created.id)
        assert [h.action for h in history] == ["create", "delete"]

    async def test_missing_holiday(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await HolidayService.delete_holiday(db, uuid.uuid4())


class TestHolidaysAPI:

    async def test_admin_crud(self, client, org):
        headers = auth_headers_for(org["admin"])
        resp = await client.post(
            "/api/v1/holidays",
            json={"name": "Diwali", "date": "2030-10-26", "holiday_type": "national"},
            headers=headers,
        )
        assert resp.status_code == 201
        holiday_id = resp.json()["id"]

        resp = await client.put(
            f"/api/v1/holidays/{holiday_id}", json={"name": "Deepavali"}, headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Deepavali"

        resp = await client.delete(f"/api/v1/holidays/{holiday_id}", headers=headers)
        assert resp.status_code == 204

        resp = await client.get(f"/api/v1/holidays/{holiday_id}", headers=headers)
        assert resp.status_code == 404

    async def test_anyone_can_list(self, client, org):
        await client.post(
            "/api/v1/holidays",
            json={"name": "Holi", "date": "2030-03-20"},
            headers=auth_headers_for(org["admin"]),
        )
        resp = await client.get(
            "/api/v1/holidays", params={"year": 2030, "month": 3},
            headers=auth_headers_for(org["employee"]),
        )
        assert resp.status_code == 200
        assert [h["name"] for h in resp.json()] == ["Holi"]

    async def test_non_admin_cannot_write(self, client, org):
        resp = await client.post(
            "/api/v1/holidays",
            json={"name": "Mine", "date": "2030-03-21"},
            headers=auth_headers_for(org["manager"]),
        )
        assert resp.status_code == 403

    async def test_month_out_of_range(self, client, org):
        resp = await client.get(
            "/api/v1/holidays", params={"year": 2030, "month": 13},
            headers=auth_headers_for(org["employee"]),
        )
        assert resp.status_code == 422
