"""User directory service — lookup, team membership, admin create/update.

Business rules:
  - Exactly one role per user; admins have no manager.
  - A manager reference must point at an active manager or admin, never self.
  - New users get one balance row per leave category, seeded from settings.
  - Balances are not editable here; only leave approval changes them.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leave_tracker.common.audit import create_audit_entry
from leave_tracker.common.constants import LeaveCategory, UserRole
from leave_tracker.common.exceptions import (
    ConflictError,
    NotFoundException,
    ValidationException,
    translate_store_errors,
)
from leave_tracker.common.pagination import PaginationMeta
from leave_tracker.config import settings
from leave_tracker.users.models import LeaveBalance, User
from leave_tracker.users.schemas import UserCreate, UserOut, UserUpdate

logger = logging.getLogger(__name__)


class UserService:
    """Async user directory operations."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _validate_manager(
        db: AsyncSession,
        *,
        user_id: Optional[uuid.UUID],
        role: UserRole,
        manager_id: Optional[uuid.UUID],
    ) -> None:
        if manager_id is None:
            return
        if role == UserRole.admin:
            raise ValidationException(
                {"manager_id": ["Admins cannot report to a manager."]}
            )
        if user_id is not None and manager_id == user_id:
            raise ValidationException(
                {"manager_id": ["A user cannot be their own manager."]}
            )

        manager = (
            await db.execute(
                select(User).where(User.id == manager_id, User.is_active.is_(True))
            )
        ).scalars().first()
        if manager is None:
            raise NotFoundException("User", str(manager_id))
        if manager.role not in (UserRole.manager, UserRole.admin):
            raise ValidationException(
                {"manager_id": [f"User {manager.email} is not a manager."]}
            )

    @staticmethod
    async def _ensure_email_free(
        db: AsyncSession,
        email: str,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(User.id).where(func.lower(User.email) == email.lower())
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        if (await db.execute(query)).scalar() is not None:
            raise ConflictError(f"An entry with email='{email}' already exists.", field="email")

    # ─────────────────────────────────────────────────────────────────
    # Lookup
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    @translate_store_errors
    async def get_user(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        active_only: bool = True,
    ) -> User:
        """Return a user by id, or raise 404."""
        query = select(User).where(User.id == user_id)
        if active_only:
            query = query.where(User.is_active.is_(True))
        user = (await db.execute(query)).scalars().first()
        if user is None:
            raise NotFoundException("User", str(user_id))
        return user

    @staticmethod
    async def lock_user(db: AsyncSession, user_id: uuid.UUID) -> None:
        """Row-lock the user until the transaction ends (a no-op on SQLite).

        Serialises one user's read-then-write leave operations across
        worker processes, where the in-process lock cannot reach.
        """
        await db.execute(
            select(User.id).where(User.id == user_id).with_for_update()
        )

    @staticmethod
    @translate_store_errors
    async def list_team(
        db: AsyncSession,
        manager_id: uuid.UUID,
    ) -> list[User]:
        """Active users whose manager is ``manager_id`` (one level only)."""
        result = await db.execute(
            select(User)
            .where(User.manager_id == manager_id, User.is_active.is_(True))
            .order_by(User.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def team_ids(db: AsyncSession, manager_id: uuid.UUID) -> list[uuid.UUID]:
        result = await db.execute(
            select(User.id).where(
                User.manager_id == manager_id,
                User.is_active.is_(True),
            )
        )
        return [row[0] for row in result.all()]

    @staticmethod
    @translate_store_errors
    async def list_users(
        db: AsyncSession,
        *,
        role: Optional[UserRole] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> dict:
        """List users with optional role filter and pagination."""
        query = select(User).order_by(User.name)
        if role is not None:
            query = query.where(User.role == role)

        count_q = query.with_only_columns(func.count()).order_by(None)
        total = (await db.execute(count_q)).scalar_one()

        offset = (page - 1) * page_size
        result = await db.execute(query.offset(offset).limit(page_size))

        return {
            "data": [UserOut.model_validate(u) for u in result.scalars().all()],
            "meta": PaginationMeta.build(page=page, page_size=page_size, total=total),
        }

    # ─────────────────────────────────────────────────────────────────
    # Create / Update
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    @translate_store_errors
    async def create_user(
        db: AsyncSession,
        data: UserCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> User:
        """Create a user with default balances for every leave category."""
        await UserService._ensure_email_free(db, data.email)
        await UserService._validate_manager(
            db, user_id=None, role=data.role, manager_id=data.manager_id,
        )

        user = User(
            name=data.name,
            email=data.email.lower(),
            role=data.role,
            manager_id=data.manager_id,
        )
        db.add(user)
        await db.flush()

        defaults = settings.default_balances
        for category in LeaveCategory:
            db.add(
                LeaveBalance(
                    user_id=user.id,
                    category=category,
                    days=defaults[category.value],
                )
            )
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor_id,
            new_values={
                "email": user.email,
                "role": user.role.value,
                "manager_id": str(user.manager_id) if user.manager_id else None,
                "balances": defaults,
            },
        )
        logger.info("Created user %s (%s)", user.email, user.role.value)
        return user

    @staticmethod
    @translate_store_errors
    async def update_user(
        db: AsyncSession,
        user_id: uuid.UUID,
        data: UserUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> User:
        """Apply a partial update. Only fields present in the payload change."""
        user = await UserService.get_user(db, user_id, active_only=False)
        changes = data.model_dump(exclude_unset=True)

        if "email" in changes and changes["email"] is not None:
            changes["email"] = changes["email"].lower()
            await UserService._ensure_email_free(db, changes["email"], exclude_id=user.id)

        role = changes.get("role") or user.role
        manager_id = changes["manager_id"] if "manager_id" in changes else user.manager_id
        if "role" in changes or "manager_id" in changes:
            await UserService._validate_manager(
                db, user_id=user.id, role=role, manager_id=manager_id,
            )

        old_values: dict = {}
        new_values: dict = {}
        for field, value in changes.items():
            if value is None and field != "manager_id":
                continue
            old = getattr(user, field)
            old_values[field] = old.value if isinstance(old, UserRole) else (
                str(old) if isinstance(old, uuid.UUID) else old
            )
            setattr(user, field, value)
            new_values[field] = value.value if isinstance(value, UserRole) else (
                str(value) if isinstance(value, uuid.UUID) else value
            )

        user.updated_at = datetime.now(timezone.utc)
        await db.flush()

        if new_values:
            await create_audit_entry(
                db,
                action="update",
                entity_type="user",
                entity_id=user.id,
                actor_id=actor_id,
                old_values=old_values,
                new_values=new_values,
            )
        return user
