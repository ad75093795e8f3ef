"""User directory Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from leave_tracker.common.constants import LeaveCategory, UserRole


class UserOut(BaseModel):
    """Full user representation (balances excluded)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    role: UserRole
    manager_id: Optional[uuid.UUID] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class UserCreate(BaseModel):
    """Payload for creating a user. Balances start at the configured defaults."""

    name: str = Field(..., min_length=1, max_length=150)
    email: EmailStr
    role: UserRole = UserRole.employee
    manager_id: Optional[uuid.UUID] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank.")
        return v


class UserUpdate(BaseModel):
    """Partial update. Leave balances are not editable here."""

    name: Optional[str] = Field(None, min_length=1, max_length=150)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    manager_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None


class LeaveBalanceOut(BaseModel):
    """Balance for a single category with the days tied up in pending requests."""

    category: LeaveCategory
    available: int
    pending: int = 0
