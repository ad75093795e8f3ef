"""Holidays router — list for everyone, admin-only writes."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.auth.dependencies import get_current_user, require_role
from leave_tracker.common.constants import UserRole
from leave_tracker.database import get_db
from leave_tracker.holidays.schemas import HolidayCreate, HolidayOut, HolidayUpdate
from leave_tracker.holidays.service import HolidayService
from leave_tracker.users.models import User

router = APIRouter(prefix="", tags=["holidays"])

_admin_dep = require_role(UserRole.admin)


@router.get("", response_model=list[HolidayOut])
async def list_holidays(
    year: Optional[int] = Query(default=None, ge=1900, le=9999),
    month: Optional[int] = Query(default=None, ge=1, le=12),
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List holidays, optionally filtered by year or month."""
    return await HolidayService.list_holidays(db, year=year, month=month)


@router.post("", response_model=HolidayOut, status_code=201)
async def create_holiday(
    body: HolidayCreate,
    admin: User = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    """Create a new holiday."""
    return await HolidayService.create_holiday(db, body, actor_id=admin.id)


@router.get("/{holiday_id}", response_model=HolidayOut)
async def get_holiday(
    holiday_id: uuid.UUID,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.get_holiday(db, holiday_id)


@router.put("/{holiday_id}", response_model=HolidayOut)
async def update_holiday(
    holiday_id: uuid.UUID,
    body: HolidayUpdate,
    admin: User = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    """Update an existing holiday."""
    return await HolidayService.update_holiday(db, holiday_id, body, actor_id=admin.id)


@router.delete("/{holiday_id}", status_code=204)
async def delete_holiday(
    holiday_id: uuid.UUID,
    admin: User = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    """Delete a holiday."""
    await HolidayService.delete_holiday(db, holiday_id, actor_id=admin.id)
