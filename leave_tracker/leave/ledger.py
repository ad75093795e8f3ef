"""Balance ledger — remaining leave days per (user, category).

The ledger never lets a counter go below zero: ``debit`` is a conditional
update that only matches while enough days remain, so it refuses even when
a caller skipped ``can_afford``. There is no credit operation:
days are only taken at approval, so rejection and cancellation have nothing
to give back.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.common.constants import LeaveCategory
from leave_tracker.common.exceptions import (
    InsufficientBalanceError,
    NotFoundException,
    ValidationException,
)
from leave_tracker.users.models import LeaveBalance

logger = logging.getLogger(__name__)


class BalanceLedger:
    """Async balance operations over the ``leave_balances`` table."""

    @staticmethod
    async def _get_row(
        db: AsyncSession,
        user_id: uuid.UUID,
        category: LeaveCategory,
        *,
        for_update: bool = False,
    ) -> LeaveBalance:
        query = (
            select(LeaveBalance)
            .where(
                LeaveBalance.user_id == user_id,
                LeaveBalance.category == category,
            )
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()

        balance = (await db.execute(query)).scalars().first()
        if balance is None:
            raise NotFoundException("LeaveBalance", f"{user_id}/{category.value}")
        return balance

    @staticmethod
    async def available(
        db: AsyncSession,
        user_id: uuid.UUID,
        category: LeaveCategory,
        *,
        for_update: bool = False,
    ) -> int:
        """Current remaining days for one category.

        ``for_update`` row-locks the counter until the transaction ends
        (a no-op on SQLite).
        """
        balance = await BalanceLedger._get_row(
            db, user_id, category, for_update=for_update,
        )
        return balance.days

    @staticmethod
    async def can_afford(
        db: AsyncSession,
        user_id: uuid.UUID,
        category: LeaveCategory,
        days: int,
        *,
        for_update: bool = False,
    ) -> bool:
        available = await BalanceLedger.available(
            db, user_id, category, for_update=for_update,
        )
        return available >= days

    @staticmethod
    async def debit(
        db: AsyncSession,
        user_id: uuid.UUID,
        category: LeaveCategory,
        days: int,
    ) -> int:
        """Take ``days`` from the counter and return the new balance.

        Raises ``InsufficientBalanceError`` without touching the row when
        fewer than ``days`` remain.
        """
        if days < 0:
            raise ValidationException({"days": ["Debit amount must not be negative."]})

        result = await db.execute(
            update(LeaveBalance)
            .where(
                LeaveBalance.user_id == user_id,
                LeaveBalance.category == category,
                LeaveBalance.days >= days,
            )
            .values(
                days=LeaveBalance.days - days,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Either the row is missing (NotFound) or the guard refused.
            available = await BalanceLedger.available(db, user_id, category)
            logger.warning(
                "Debit refused for user=%s category=%s: available=%d required=%d",
                user_id, category.value, available, days,
            )
            raise InsufficientBalanceError(category.value, available, days)

        remaining = await BalanceLedger.available(db, user_id, category)
        logger.info(
            "Debited %d %s day(s) from user=%s, remaining=%d",
            days, category.value, user_id, remaining,
        )
        return remaining
