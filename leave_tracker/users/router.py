"""Users router — admin directory management and team listing."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.auth.dependencies import get_current_user, require_role
from leave_tracker.common.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, UserRole
from leave_tracker.common.exceptions import ForbiddenException
from leave_tracker.common.pagination import PaginatedResponse
from leave_tracker.database import get_db
from leave_tracker.users.models import User
from leave_tracker.users.schemas import UserCreate, UserOut, UserUpdate
from leave_tracker.users.service import UserService

router = APIRouter(prefix="", tags=["users"])

_admin_dep = require_role(UserRole.admin)
_manager_dep = require_role(UserRole.manager)


@router.get("", response_model=PaginatedResponse[UserOut])
async def list_users(
    role: Optional[UserRole] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    _user: User = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    """List users, optionally filtered by role."""
    return await UserService.list_users(db, role=role, page=page, page_size=page_size)


@router.post("", response_model=UserOut, status_code=201)
async def create_user(
    body: UserCreate,
    admin: User = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    """Create a user with default leave balances."""
    return await UserService.create_user(db, body, actor_id=admin.id)


@router.get("/team/members", response_model=list[UserOut])
async def team_members(
    manager: User = Depends(_manager_dep),
    db: AsyncSession = Depends(get_db),
):
    """Active direct reports of the caller."""
    return await UserService.list_team(db, manager.id)


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if user.role != UserRole.admin and user.id != user_id:
        raise ForbiddenException("You can only view your own profile.")
    return await UserService.get_user(db, user_id, active_only=False)


@router.put("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    admin: User = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    """Update name, email, role, manager, or active flag."""
    return await UserService.update_user(db, user_id, body, actor_id=admin.id)
