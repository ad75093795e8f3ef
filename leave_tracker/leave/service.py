"""Leave service layer — submission, approval, rejection, cancellation.

Business logic:
  - Working days exclude weekends and declared holidays
  - Overlap is checked against the requester's pending and approved requests
  - Balance is checked at submission but only debited at approval,
    where the day count is recomputed and the balance re-checked
  - Every write for a user runs under that user's lock and is committed
    before the lock is released
  - Role-scoped listing: employees see their own requests, managers their
    own and their team's, admins everything
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.common.audit import create_audit_entry
from leave_tracker.common.constants import (
    BLOCKING_LEAVE_STATUSES,
    LeaveCategory,
    LeaveStatus,
    UserRole,
)
from leave_tracker.common.exceptions import (
    ConflictError,
    ForbiddenException,
    InsufficientBalanceError,
    NotFoundException,
    ValidationException,
    translate_store_errors,
)
from leave_tracker.common.pagination import PaginationMeta
from leave_tracker.config import settings
from leave_tracker.holidays.service import HolidayService
from leave_tracker.leave.calendar import working_days
from leave_tracker.leave.ledger import BalanceLedger
from leave_tracker.leave.locks import user_locks
from leave_tracker.leave.models import LeaveRequest
from leave_tracker.leave.schemas import LeaveRequestCreate, LeaveRequestOut
from leave_tracker.users.models import LeaveBalance, User
from leave_tracker.users.schemas import LeaveBalanceOut
from leave_tracker.users.service import UserService

logger = logging.getLogger(__name__)


def _today() -> date:
    return date.today()


def _snapshot(req: LeaveRequest) -> dict:
    return {
        "user_id": str(req.user_id),
        "category": req.category.value,
        "start_date": req.start_date.isoformat(),
        "end_date": req.end_date.isoformat(),
        "total_days": req.total_days,
        "reason": req.reason,
        "status": req.status.value,
    }


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: overlap, balances, requests, approvals."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _get_request(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave_req

    @staticmethod
    async def _count_days(db: AsyncSession, start: date, end: date) -> int:
        """Working days in ``[start, end]`` using the current holiday list."""
        holidays = await HolidayService.get_holiday_dates(db, start, end)
        return working_days(start, end, holidays)

    @staticmethod
    def _can_review(
        approver: User,
        requester: User,
        allow_self_approval: bool,
    ) -> bool:
        """Admins review anything; managers review their direct team and,
        when self-approval is allowed, their own requests. Employees never
        review."""
        if approver.role == UserRole.admin:
            return True
        if approver.role != UserRole.manager:
            return False
        if requester.manager_id == approver.id:
            return True
        return allow_self_approval and requester.id == approver.id

    @staticmethod
    async def _authorize_review(
        db: AsyncSession,
        approver_id: uuid.UUID,
        requester_id: uuid.UUID,
        allow_self_approval: bool,
        action: str,
    ) -> User:
        approver = await UserService.get_user(db, approver_id)
        requester = await UserService.get_user(db, requester_id, active_only=False)
        if not LeaveService._can_review(approver, requester, allow_self_approval):
            logger.warning(
                "User %s (%s) denied %s on leave of user %s",
                approver.id, approver.role.value, action, requester.id,
            )
            raise ForbiddenException(
                f"You are not authorized to {action} this leave request."
            )
        return approver

    @staticmethod
    async def _can_view(db: AsyncSession, viewer: User, owner_id: uuid.UUID) -> bool:
        if viewer.role == UserRole.admin or viewer.id == owner_id:
            return True
        if viewer.role == UserRole.manager:
            owner = await UserService.get_user(db, owner_id, active_only=False)
            return owner.manager_id == viewer.id
        return False

    @staticmethod
    def _build_request_response(req: LeaveRequest) -> LeaveRequestOut:
        return LeaveRequestOut.model_validate(req)

    # ─────────────────────────────────────────────────────────────────
    # Overlap
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    @translate_store_errors
    async def has_overlap(
        db: AsyncSession,
        user_id: uuid.UUID,
        start: date,
        end: date,
        exclude_request_id: Optional[uuid.UUID] = None,
    ) -> bool:
        """True if any pending or approved request of ``user_id`` shares at
        least one day with ``[start, end]``."""
        query = select(func.count()).select_from(LeaveRequest).where(
            LeaveRequest.user_id == user_id,
            LeaveRequest.status.in_(BLOCKING_LEAVE_STATUSES),
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start,
        )
        if exclude_request_id is not None:
            query = query.where(LeaveRequest.id != exclude_request_id)

        result = await db.execute(query)
        return result.scalar_one() > 0

    # ─────────────────────────────────────────────────────────────────
    # Balance
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    @translate_store_errors
    async def get_balance(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> list[LeaveBalanceOut]:
        """Available days per category, plus days tied up in pending requests."""
        await UserService.get_user(db, user_id, active_only=False)

        result = await db.execute(
            select(LeaveBalance)
            .where(LeaveBalance.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        balances = {b.category: b.days for b in result.scalars().all()}

        pending_result = await db.execute(
            select(
                LeaveRequest.category,
                func.coalesce(func.sum(LeaveRequest.total_days), 0),
            )
            .where(
                LeaveRequest.user_id == user_id,
                LeaveRequest.status == LeaveStatus.pending,
            )
            .group_by(LeaveRequest.category)
        )
        pending = {row[0]: int(row[1]) for row in pending_result.all()}

        return [
            LeaveBalanceOut(
                category=category,
                available=balances[category],
                pending=pending.get(category, 0),
            )
            for category in LeaveCategory
            if category in balances
        ]

    # ─────────────────────────────────────────────────────────────────
    # Apply Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    @translate_store_errors
    async def apply_leave(
        db: AsyncSession,
        requester_id: uuid.UUID,
        data: LeaveRequestCreate,
    ) -> LeaveRequestOut:
        """Submit a leave request in ``pending`` state.

        Rejects past start dates, inverted ranges, overlaps with the
        requester's pending/approved requests, and requests the current
        balance cannot cover. The balance itself is not touched until
        approval, so several pending requests may together exceed it.
        """
        requester = await UserService.get_user(db, requester_id)

        if data.start_date < _today():
            raise ValidationException(
                {"start_date": ["Start date cannot be in the past."]}
            )
        if data.end_date < data.start_date:
            raise ValidationException(
                {"end_date": ["End date must be on or after the start date."]}
            )
        reason = (data.reason or "").strip()
        if not reason:
            raise ValidationException({"reason": ["Reason is required."]})

        async with user_locks.hold(requester.id):
            await UserService.lock_user(db, requester.id)
            if await LeaveService.has_overlap(
                db, requester.id, data.start_date, data.end_date,
            ):
                logger.warning(
                    "Overlapping leave refused for user %s (%s to %s)",
                    requester.id, data.start_date, data.end_date,
                )
                raise ConflictError(
                    "Leave dates overlap with an existing pending or approved request.",
                    field="dates",
                )

            days = await LeaveService._count_days(db, data.start_date, data.end_date)

            if not await BalanceLedger.can_afford(
                db, requester.id, data.category, days, for_update=True,
            ):
                available = await BalanceLedger.available(db, requester.id, data.category)
                raise InsufficientBalanceError(data.category.value, available, days)

            leave_request = LeaveRequest(
                user_id=requester.id,
                category=data.category,
                start_date=data.start_date,
                end_date=data.end_date,
                total_days=days,
                reason=reason,
                status=LeaveStatus.pending,
            )
            db.add(leave_request)
            await db.flush()

            await create_audit_entry(
                db,
                action="create",
                entity_type="leave_request",
                entity_id=leave_request.id,
                actor_id=requester.id,
                new_values=_snapshot(leave_request),
            )
            await db.commit()

        logger.info(
            "Leave %s submitted by user %s: %s %s to %s (%d day(s))",
            leave_request.id, requester.id, data.category.value,
            data.start_date, data.end_date, days,
        )
        return LeaveService._build_request_response(leave_request)

    # ─────────────────────────────────────────────────────────────────
    # Approve Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _commit_approval(
        db: AsyncSession,
        leave_req: LeaveRequest,
        approver_id: uuid.UUID,
        days: int,
    ) -> None:
        """Write the status change and the debit as one transaction.

        The status write only matches a still-pending row; if the debit is
        then refused, the transaction is rolled back so neither survives.
        """
        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(LeaveRequest)
            .where(
                LeaveRequest.id == leave_req.id,
                LeaveRequest.status == LeaveStatus.pending,
            )
            .values(
                status=LeaveStatus.approved,
                approved_by=approver_id,
                reviewed_at=now,
                total_days=days,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError("Leave request is no longer pending.", field="status")

        try:
            await BalanceLedger.debit(db, leave_req.user_id, leave_req.category, days)
        except InsufficientBalanceError:
            await db.rollback()
            raise

        await create_audit_entry(
            db,
            action="approve",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=approver_id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.approved.value, "total_days": days},
        )
        await db.commit()

    @staticmethod
    @translate_store_errors
    async def approve_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        approver_id: uuid.UUID,
        *,
        allow_self_approval: Optional[bool] = None,
    ) -> LeaveRequestOut:
        """Approve a pending request and debit the requester's balance.

        The working-day count is recomputed against today's holiday list
        and the balance re-checked; nothing is written if it falls short.
        """
        if allow_self_approval is None:
            allow_self_approval = settings.ALLOW_SELF_APPROVAL

        leave_req = await LeaveService._get_request(db, request_id)

        async with user_locks.hold(leave_req.user_id):
            leave_req = await LeaveService._get_request(db, request_id)
            if leave_req.status != LeaveStatus.pending:
                raise ConflictError(
                    f"Leave request is already {leave_req.status.value}.",
                    field="status",
                )

            await LeaveService._authorize_review(
                db, approver_id, leave_req.user_id, allow_self_approval, "approve",
            )

            days = await LeaveService._count_days(
                db, leave_req.start_date, leave_req.end_date,
            )
            if not await BalanceLedger.can_afford(
                db, leave_req.user_id, leave_req.category, days, for_update=True,
            ):
                available = await BalanceLedger.available(
                    db, leave_req.user_id, leave_req.category,
                )
                logger.warning(
                    "Approval of leave %s refused: available=%d required=%d",
                    leave_req.id, available, days,
                )
                raise InsufficientBalanceError(
                    leave_req.category.value, available, days,
                )

            await LeaveService._commit_approval(db, leave_req, approver_id, days)

        await db.refresh(leave_req)
        logger.info(
            "Leave %s approved by %s (%d %s day(s) debited)",
            leave_req.id, approver_id, days, leave_req.category.value,
        )
        return LeaveService._build_request_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Reject Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    @translate_store_errors
    async def reject_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        approver_id: uuid.UUID,
        reason: str,
        *,
        allow_self_approval: Optional[bool] = None,
    ) -> LeaveRequestOut:
        """Reject a pending request. The balance is never touched."""
        reason = (reason or "").strip()
        if not reason:
            raise ValidationException({"reason": ["Rejection reason is required."]})
        if allow_self_approval is None:
            allow_self_approval = settings.ALLOW_SELF_APPROVAL

        leave_req = await LeaveService._get_request(db, request_id)

        async with user_locks.hold(leave_req.user_id):
            leave_req = await LeaveService._get_request(db, request_id)
            if leave_req.status != LeaveStatus.pending:
                raise ConflictError(
                    f"Leave request is already {leave_req.status.value}.",
                    field="status",
                )

            await LeaveService._authorize_review(
                db, approver_id, leave_req.user_id, allow_self_approval, "reject",
            )

            now = datetime.now(timezone.utc)
            result = await db.execute(
                update(LeaveRequest)
                .where(
                    LeaveRequest.id == leave_req.id,
                    LeaveRequest.status == LeaveStatus.pending,
                )
                .values(
                    status=LeaveStatus.rejected,
                    approved_by=approver_id,
                    rejection_reason=reason,
                    reviewed_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError("Leave request is no longer pending.", field="status")

            await create_audit_entry(
                db,
                action="reject",
                entity_type="leave_request",
                entity_id=leave_req.id,
                actor_id=approver_id,
                old_values={"status": LeaveStatus.pending.value},
                new_values={"status": LeaveStatus.rejected.value, "reason": reason},
            )
            await db.commit()

        await db.refresh(leave_req)
        logger.info("Leave %s rejected by %s", leave_req.id, approver_id)
        return LeaveService._build_request_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Cancel Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    @translate_store_errors
    async def cancel_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        requester_id: uuid.UUID,
    ) -> None:
        """Withdraw one's own pending request.

        The row is deleted; the audit trail keeps a snapshot of it.
        """
        leave_req = await LeaveService._get_request(db, request_id)
        if leave_req.user_id != requester_id:
            raise ForbiddenException("You can only cancel your own leave requests.")

        async with user_locks.hold(requester_id):
            leave_req = await LeaveService._get_request(db, request_id)
            if leave_req.status != LeaveStatus.pending:
                raise ConflictError(
                    "Only pending leave requests can be cancelled.",
                    field="status",
                )

            snapshot = _snapshot(leave_req)
            result = await db.execute(
                delete(LeaveRequest)
                .where(
                    LeaveRequest.id == leave_req.id,
                    LeaveRequest.status == LeaveStatus.pending,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError("Leave request is no longer pending.", field="status")
            db.expunge(leave_req)

            await create_audit_entry(
                db,
                action="cancel",
                entity_type="leave_request",
                entity_id=request_id,
                actor_id=requester_id,
                old_values=snapshot,
            )
            await db.commit()

        logger.info("Leave %s cancelled by user %s", request_id, requester_id)

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    @translate_store_errors
    async def get_leave_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        viewer_id: uuid.UUID,
    ) -> LeaveRequestOut:
        viewer = await UserService.get_user(db, viewer_id)
        leave_req = await LeaveService._get_request(db, request_id)
        if not await LeaveService._can_view(db, viewer, leave_req.user_id):
            raise ForbiddenException("Access denied.")
        return LeaveService._build_request_response(leave_req)

    @staticmethod
    @translate_store_errors
    async def get_leave_requests(
        db: AsyncSession,
        viewer_id: uuid.UUID,
        *,
        user_id: Optional[uuid.UUID] = None,
        status: Optional[LeaveStatus] = None,
        category: Optional[LeaveCategory] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> dict:
        """List leave requests visible to ``viewer_id``, newest first.

        Visibility:
          - employee: own requests only
          - manager: own requests + direct reports
          - admin: all requests
        """
        viewer = await UserService.get_user(db, viewer_id)

        query = select(LeaveRequest).order_by(LeaveRequest.created_at.desc())

        if viewer.role == UserRole.employee:
            query = query.where(LeaveRequest.user_id == viewer.id)
        elif viewer.role == UserRole.manager:
            visible = [viewer.id, *await UserService.team_ids(db, viewer.id)]
            query = query.where(LeaveRequest.user_id.in_(visible))
        # admin: no user filter

        if user_id:
            query = query.where(LeaveRequest.user_id == user_id)
        if status:
            query = query.where(LeaveRequest.status == status)
        if category:
            query = query.where(LeaveRequest.category == category)
        if from_date:
            query = query.where(LeaveRequest.end_date >= from_date)
        if to_date:
            query = query.where(LeaveRequest.start_date <= to_date)

        count_q = query.with_only_columns(func.count()).order_by(None)
        total = (await db.execute(count_q)).scalar_one()

        offset = (page - 1) * page_size
        result = await db.execute(query.offset(offset).limit(page_size))

        return {
            "data": [
                LeaveService._build_request_response(r)
                for r in result.scalars().all()
            ],
            "meta": PaginationMeta.build(page=page, page_size=page_size, total=total),
        }

    @staticmethod
    @translate_store_errors
    async def get_pending_approvals(
        db: AsyncSession,
        approver_id: uuid.UUID,
        *,
        allow_self_approval: Optional[bool] = None,
    ) -> list[LeaveRequestOut]:
        """Pending requests the approver is allowed to act on, oldest first."""
        if allow_self_approval is None:
            allow_self_approval = settings.ALLOW_SELF_APPROVAL

        approver = await UserService.get_user(db, approver_id)

        query = (
            select(LeaveRequest)
            .where(LeaveRequest.status == LeaveStatus.pending)
            .order_by(LeaveRequest.created_at.asc())
        )
        if approver.role == UserRole.employee:
            return []
        if approver.role == UserRole.manager:
            reviewable = await UserService.team_ids(db, approver.id)
            if allow_self_approval:
                reviewable.append(approver.id)
            if not reviewable:
                return []
            query = query.where(LeaveRequest.user_id.in_(reviewable))

        result = await db.execute(query)
        return [
            LeaveService._build_request_response(r)
            for r in result.scalars().all()
        ]
