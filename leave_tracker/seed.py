"""Seed a database with demo users and one year of holidays.

Creates an admin, a manager and two employees reporting to that manager,
plus the standard holiday calendar for the chosen year. Users are matched
by email and holidays by date, so re-running only fills in what is missing.

Usage:
    python -m leave_tracker.seed                 # current year
    python -m leave_tracker.seed --year 2027
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import date
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.common.constants import HolidayType, LeaveCategory, UserRole
from leave_tracker.config import settings
from leave_tracker.database import async_session_factory, engine
from leave_tracker.holidays.models import Holiday
from leave_tracker.holidays.schemas import HolidayCreate
from leave_tracker.holidays.service import HolidayService
from leave_tracker.users.models import LeaveBalance, User
from leave_tracker.users.schemas import UserCreate
from leave_tracker.users.service import UserService

logger = logging.getLogger("leave_tracker.seed")

# (name, email, role, reports to manager, balance overrides)
SEED_USERS = [
    ("Admin User", "admin@example.com", UserRole.admin, False, {}),
    ("Manager User", "manager@example.com", UserRole.manager, False, {}),
    ("Employee One", "employee1@example.com", UserRole.employee, True, {}),
    ("Employee Two", "employee2@example.com", UserRole.employee, True,
     {"casual": 8, "earned": 12}),
]

# (name, month, day, type)
SEED_HOLIDAYS = [
    ("New Year", 1, 1, HolidayType.national),
    ("Republic Day", 1, 26, HolidayType.national),
    ("Company Foundation Day", 6, 1, HolidayType.company),
    ("Independence Day", 8, 15, HolidayType.national),
    ("Gandhi Jayanti", 10, 2, HolidayType.national),
    ("Christmas", 12, 25, HolidayType.national),
]


async def _find_user(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(
        select(User).where(func.lower(User.email) == email.lower())
    )
    return result.scalars().first()


async def _holiday_exists(db: AsyncSession, on: date) -> bool:
    result = await db.execute(select(Holiday.id).where(Holiday.date == on))
    return result.scalar() is not None


async def seed(db: AsyncSession, *, year: int) -> dict[str, int]:
    """Insert missing demo users and holidays. Returns counts created."""
    created = {"users": 0, "holidays": 0}
    manager_id = None

    for name, email, role, reports_to_manager, overrides in SEED_USERS:
        user = await _find_user(db, email)
        if user is None:
            user = await UserService.create_user(
                db,
                UserCreate(
                    name=name,
                    email=email,
                    role=role,
                    manager_id=manager_id if reports_to_manager else None,
                ),
            )
            for category, days in overrides.items():
                await db.execute(
                    update(LeaveBalance)
                    .where(
                        LeaveBalance.user_id == user.id,
                        LeaveBalance.category == LeaveCategory(category),
                    )
                    .values(days=days)
                )
            created["users"] += 1
        else:
            logger.info("User %s already present, skipping", email)

        if role == UserRole.manager:
            manager_id = user.id

    for name, month, day, holiday_type in SEED_HOLIDAYS:
        on = date(year, month, day)
        if await _holiday_exists(db, on):
            logger.info("Holiday on %s already present, skipping", on)
            continue
        await HolidayService.create_holiday(
            db, HolidayCreate(name=name, date=on, holiday_type=holiday_type),
        )
        created["holidays"] += 1

    await db.flush()
    return created


async def _run(year: int) -> dict[str, int]:
    try:
        async with async_session_factory() as db:
            created = await seed(db, year=year)
            await db.commit()
    finally:
        await engine.dispose()
    return created


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Seed the leave tracker database with demo users and holidays",
    )
    parser.add_argument("--year", type=int, default=date.today().year,
                        help="Year to declare holidays for (default: current year)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    created = asyncio.run(_run(args.year))
    logger.info(
        "Seed complete: %d user(s), %d holiday(s) created for %d",
        created["users"], created["holidays"], args.year,
    )


if __name__ == "__main__":
    main()
