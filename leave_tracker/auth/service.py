"""Auth service — access token minting.

Login and session management live outside this service; tokens are issued
by an upstream identity provider or by operators using this helper.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt

from leave_tracker.common.constants import UserRole
from leave_tracker.config import settings


def create_access_token(
    user_id: uuid.UUID,
    role: UserRole,
    *,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Return an encoded access JWT for ``user_id``."""
    if expires_delta is None:
        expires_delta = timedelta(hours=settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "type": "access",
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
