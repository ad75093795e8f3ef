"""Leave router — apply, approve/reject, cancel, balances, listings.

All endpoints require authentication. Approval endpoints are gated to
managers and admins; the service decides which requests each approver
may act on.
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.auth.dependencies import get_current_user, require_role
from leave_tracker.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    LeaveCategory,
    LeaveStatus,
    UserRole,
)
from leave_tracker.common.pagination import PaginatedResponse
from leave_tracker.common.rate_limit import WRITE_LIMIT, limiter
from leave_tracker.database import get_db
from leave_tracker.leave.schemas import (
    LeaveRejectRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
)
from leave_tracker.leave.service import LeaveService
from leave_tracker.users.models import User
from leave_tracker.users.schemas import LeaveBalanceOut

router = APIRouter(prefix="", tags=["leave"])

_approver_dep = require_role(UserRole.manager)
# Admins administer the directory and do not take leave
_submitter_dep = require_role(UserRole.manager, UserRole.employee, inherit=False)


# ── POST / ──────────────────────────────────────────────────────────

@router.post("", response_model=LeaveRequestOut, status_code=201)
@limiter.limit(WRITE_LIMIT)
async def apply_leave(
    request: Request,
    body: LeaveRequestCreate,
    user: User = Depends(_submitter_dep),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave. Validates dates, overlap, and balance."""
    return await LeaveService.apply_leave(db, user.id, body)


# ── GET / ───────────────────────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[LeaveRequestOut])
async def list_leaves(
    status: Optional[LeaveStatus] = Query(None),
    category: Optional[LeaveCategory] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Leave requests visible to the caller, newest first."""
    return await LeaveService.get_leave_requests(
        db,
        user.id,
        status=status,
        category=category,
        user_id=user_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )


# ── GET /balances ───────────────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def my_balances(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's balance per category, with pending days."""
    return await LeaveService.get_balance(db, user.id)


# ── GET /pending-approvals ──────────────────────────────────────────

@router.get("/pending-approvals", response_model=list[LeaveRequestOut])
async def pending_approvals(
    approver: User = Depends(_approver_dep),
    db: AsyncSession = Depends(get_db),
):
    """Pending requests the caller may approve or reject."""
    return await LeaveService.get_pending_approvals(db, approver.id)


# ── GET /{request_id} ───────────────────────────────────────────────

@router.get("/{request_id}", response_model=LeaveRequestOut)
async def get_leave(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave_request(db, request_id, user.id)


# ── PUT /{request_id}/approve ───────────────────────────────────────

@router.put("/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: uuid.UUID,
    approver: User = Depends(_approver_dep),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending request and debit the requester's balance."""
    return await LeaveService.approve_leave(db, request_id, approver.id)


# ── PUT /{request_id}/reject ────────────────────────────────────────

@router.put("/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    request_id: uuid.UUID,
    body: LeaveRejectRequest,
    approver: User = Depends(_approver_dep),
    db: AsyncSession = Depends(get_db),
):
    """Reject a pending request with a reason."""
    return await LeaveService.reject_leave(db, request_id, approver.id, body.reason)


# ── DELETE /{request_id} ────────────────────────────────────────────

@router.delete("/{request_id}", status_code=204)
async def cancel_leave(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Withdraw one's own pending request."""
    await LeaveService.cancel_leave(db, request_id, user.id)
