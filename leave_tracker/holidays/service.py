"""Holiday directory service — declared non-working dates."""

from __future__ import annotations

import calendar
import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.common.audit import create_audit_entry
from leave_tracker.common.exceptions import (
    ConflictError,
    NotFoundException,
    ValidationException,
    translate_store_errors,
)
from leave_tracker.holidays.models import Holiday
from leave_tracker.holidays.schemas import HolidayCreate, HolidayOut, HolidayUpdate

logger = logging.getLogger(__name__)


def _snapshot(holiday: Holiday) -> dict:
    return {
        "name": holiday.name,
        "date": holiday.date.isoformat(),
        "holiday_type": holiday.holiday_type.value,
    }


class HolidayService:
    """Async holiday operations."""

    @staticmethod
    async def _get(db: AsyncSession, holiday_id: uuid.UUID) -> Holiday:
        holiday = (
            await db.execute(select(Holiday).where(Holiday.id == holiday_id))
        ).scalars().first()
        if holiday is None:
            raise NotFoundException("Holiday", str(holiday_id))
        return holiday

    @staticmethod
    async def _ensure_date_free(
        db: AsyncSession,
        on: date,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Holiday.id).where(Holiday.date == on)
        if exclude_id is not None:
            query = query.where(Holiday.id != exclude_id)
        if (await db.execute(query)).scalar() is not None:
            raise ConflictError(
                f"A holiday already exists on {on.isoformat()}.", field="date",
            )

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    @translate_store_errors
    async def get_holiday_dates(
        db: AsyncSession,
        from_date: date,
        to_date: date,
    ) -> set[date]:
        """Return the set of holiday dates within ``[from_date, to_date]``."""
        result = await db.execute(
            select(Holiday.date).where(
                Holiday.date >= from_date,
                Holiday.date <= to_date,
            )
        )
        return {row[0] for row in result.all()}

    @staticmethod
    @translate_store_errors
    async def list_holidays(
        db: AsyncSession,
        *,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> list[HolidayOut]:
        """List holidays ordered by date, optionally for one year or month."""
        query = select(Holiday).order_by(Holiday.date)

        if month is not None and year is None:
            raise ValidationException({"month": ["month requires year."]})
        if year is not None:
            if month is not None:
                last_day = calendar.monthrange(year, month)[1]
                start, end = date(year, month, 1), date(year, month, last_day)
            else:
                start, end = date(year, 1, 1), date(year, 12, 31)
            query = query.where(Holiday.date >= start, Holiday.date <= end)

        result = await db.execute(query)
        return [HolidayOut.model_validate(h) for h in result.scalars().all()]

    @staticmethod
    @translate_store_errors
    async def get_holiday(db: AsyncSession, holiday_id: uuid.UUID) -> HolidayOut:
        return HolidayOut.model_validate(await HolidayService._get(db, holiday_id))

    # ─────────────────────────────────────────────────────────────────
    # Admin writes
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    @translate_store_errors
    async def create_holiday(
        db: AsyncSession,
        data: HolidayCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> HolidayOut:
        """Declare a holiday. One holiday per calendar date."""
        await HolidayService._ensure_date_free(db, data.date)

        holiday = Holiday(
            name=data.name.strip(),
            date=data.date,
            holiday_type=data.holiday_type,
        )
        db.add(holiday)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            new_values=_snapshot(holiday),
        )
        logger.info("Declared holiday %s on %s", holiday.name, holiday.date)
        return HolidayOut.model_validate(holiday)

    @staticmethod
    @translate_store_errors
    async def update_holiday(
        db: AsyncSession,
        holiday_id: uuid.UUID,
        data: HolidayUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> HolidayOut:
        holiday = await HolidayService._get(db, holiday_id)
        old_values = _snapshot(holiday)

        if data.date is not None and data.date != holiday.date:
            await HolidayService._ensure_date_free(db, data.date, exclude_id=holiday.id)
            holiday.date = data.date
        if data.name is not None:
            holiday.name = data.name.strip()
        if data.holiday_type is not None:
            holiday.holiday_type = data.holiday_type
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=_snapshot(holiday),
        )
        return HolidayOut.model_validate(holiday)

    @staticmethod
    @translate_store_errors
    async def delete_holiday(
        db: AsyncSession,
        holiday_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        holiday = await HolidayService._get(db, holiday_id)
        old_values = _snapshot(holiday)

        await db.delete(holiday)
        await db.flush()

        await create_audit_entry(
            db,
            action="delete",
            entity_type="holiday",
            entity_id=holiday_id,
            actor_id=actor_id,
            old_values=old_values,
        )
        logger.info("Deleted holiday %s (%s)", old_values["name"], old_values["date"])
