"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leave_tracker.auth.service import create_access_token
from leave_tracker.common.constants import LeaveCategory, UserRole
from leave_tracker.common.rate_limit import limiter
from leave_tracker.config import settings
from leave_tracker.database import Base, get_db
from leave_tracker.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import leave_tracker.common.audit  # noqa: F401
import leave_tracker.holidays.models  # noqa: F401
import leave_tracker.leave.models  # noqa: F401
from leave_tracker.users.models import LeaveBalance, User

# ── SQLite compat: compile PG-specific types to TEXT ────────────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Dates ───────────────────────────────────────────────────────────

def next_weekday(weekday: int, *, weeks_ahead: int = 1) -> date:
    """The given weekday (0 = Monday) at least ``weeks_ahead`` weeks out."""
    today = date.today()
    offset = (weekday - today.weekday()) % 7
    return today + timedelta(days=offset + 7 * weeks_ahead)


def next_monday(*, weeks_ahead: int = 1) -> date:
    return next_weekday(0, weeks_ahead=weeks_ahead)


# ── Model factories ─────────────────────────────────────────────────

async def make_user(
    db: AsyncSession,
    *,
    name: str = "Test User",
    email: Optional[str] = None,
    role: UserRole = UserRole.employee,
    manager_id: Optional[uuid.UUID] = None,
    is_active: bool = True,
    balances: Optional[dict[str, int]] = None,
    with_balances: bool = True,
) -> User:
    """Insert a user plus one balance row per category.

    ``balances`` overrides the configured defaults per category name.
    """
    user = User(
        id=uuid.uuid4(),
        name=name,
        email=email or f"user.{uuid.uuid4().hex[:8]}@example.com",
        role=role,
        manager_id=manager_id,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    db.add(user)
    await db.flush()

    if with_balances:
        opening = {**settings.default_balances, **(balances or {})}
        for category in LeaveCategory:
            db.add(
                LeaveBalance(
                    id=uuid.uuid4(),
                    user_id=user.id,
                    category=category,
                    days=opening[category.value],
                )
            )
        await db.flush()
    return user


@pytest.fixture
async def org(db) -> dict[str, User]:
    """A small committed organisation.

    admin; manager with direct report employee; other_manager with direct
    report outsider.
    """
    admin = await make_user(db, name="Ada Admin", email="admin@example.com", role=UserRole.admin)
    manager = await make_user(
        db, name="Maya Manager", email="manager@example.com", role=UserRole.manager,
    )
    employee = await make_user(
        db, name="Eli Employee", email="employee@example.com", manager_id=manager.id,
    )
    other_manager = await make_user(
        db, name="Omar Manager", email="other.manager@example.com", role=UserRole.manager,
    )
    outsider = await make_user(
        db, name="Oona Outsider", email="outsider@example.com", manager_id=other_manager.id,
    )
    await db.commit()
    return {
        "admin": admin,
        "manager": manager,
        "employee": employee,
        "other_manager": other_manager,
        "outsider": outsider,
    }


# ── Auth helpers ────────────────────────────────────────────────────

def auth_headers_for(user: User, *, expired: bool = False) -> dict[str, str]:
    """Return Bearer auth headers for ``user``."""
    expires_delta = timedelta(hours=-1) if expired else None
    token = create_access_token(user.id, user.role, expires_delta=expires_delta)
    return {"Authorization": f"Bearer {token}"}
