"""Tests for common utilities — exception taxonomy, RFC 7807 handlers,
store-error translation, pagination, and configuration defaults.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from leave_tracker.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    InfrastructureError,
    InsufficientBalanceError,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
    translate_store_errors,
)
from leave_tracker.common.pagination import PaginationMeta
from leave_tracker.config import settings


# ═════════════════════════════════════════════════════════════════════
# EXCEPTION TAXONOMY
# ═════════════════════════════════════════════════════════════════════


class TestExceptions:

    @pytest.mark.parametrize(
        ("exc", "status", "error_type"),
        [
            (ValidationException({"f": ["bad"]}), 422, "validation-error"),
            (ForbiddenException(), 403, "forbidden"),
            (ConflictError("taken"), 409, "conflict"),
            (InsufficientBalanceError("casual", 1, 2), 422, "insufficient-balance"),
            (NotFoundException("LeaveRequest", "42"), 404, "not-found"),
            (InfrastructureError(), 503, "infrastructure"),
        ],
    )
    def test_kind_and_status(self, exc: AppException, status: int, error_type: str):
        assert isinstance(exc, AppException)
        assert exc.status_code == status
        assert exc.error_type == error_type
        assert str(exc) == exc.detail

    def test_insufficient_balance_carries_figures(self):
        exc = InsufficientBalanceError("earned", 3, 5)
        assert (exc.category, exc.available, exc.required) == ("earned", 3, 5)
        assert "Available: 3, Required: 5" in exc.detail

    def test_conflict_field_errors(self):
        assert ConflictError("overlap", field="dates").errors == {"dates": ["overlap"]}
        assert ConflictError("overlap").errors is None

    def test_not_found_message(self):
        exc = NotFoundException("Holiday", "abc")
        assert exc.title == "Holiday Not Found"
        assert "'abc'" in exc.detail


# ═════════════════════════════════════════════════════════════════════
# STORE ERROR TRANSLATION
# ═════════════════════════════════════════════════════════════════════


class TestTranslateStoreErrors:

    async def test_operational_error_translated(self):
        @translate_store_errors
        async def broken():
            raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))

        with pytest.raises(InfrastructureError) as exc_info:
            await broken()
        assert isinstance(exc_info.value.__cause__, OperationalError)

    async def test_interface_error_translated(self):
        @translate_store_errors
        async def broken():
            raise InterfaceError("SELECT 1", {}, Exception("connection is closed"))

        with pytest.raises(InfrastructureError):
            await broken()

    async def test_other_errors_pass_through(self):
        @translate_store_errors
        async def conflict():
            raise IntegrityError("INSERT", {}, Exception("unique"))

        with pytest.raises(IntegrityError):
            await conflict()

    async def test_domain_errors_pass_through(self):
        @translate_store_errors
        async def forbidden():
            raise ForbiddenException("no")

        with pytest.raises(ForbiddenException):
            await forbidden()

    async def test_return_value_and_name_preserved(self):
        @translate_store_errors
        async def ok(x: int) -> int:
            return x * 2

        assert await ok(21) == 42
        assert ok.__name__ == "ok"


# ═════════════════════════════════════════════════════════════════════
# RFC 7807 HANDLERS
# ═════════════════════════════════════════════════════════════════════


class _Payload(BaseModel):
    count: int


def _problem_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/balance")
    async def balance():
        raise InsufficientBalanceError("sick", 0, 2)

    @app.get("/down")
    async def down():
        raise InfrastructureError()

    @app.post("/payload")
    async def payload(body: _Payload):
        return body

    return app


class TestProblemDetails:

    async def test_app_exception_rendered(self):
        async with AsyncClient(
            transport=ASGITransport(app=_problem_app()), base_url="http://test",
        ) as ac:
            resp = await ac.get("/balance")

        assert resp.status_code == 422
        assert resp.headers["content-type"].startswith("application/problem+json")
        body = resp.json()
        assert body["type"].endswith("/insufficient-balance")
        assert body["instance"] == "/balance"
        assert body["errors"] == {"balance": ["available=0", "required=2"]}

    async def test_infrastructure_error_is_503(self):
        async with AsyncClient(
            transport=ASGITransport(app=_problem_app()), base_url="http://test",
        ) as ac:
            resp = await ac.get("/down")

        assert resp.status_code == 503
        assert "errors" not in resp.json()

    async def test_request_validation_rendered(self):
        async with AsyncClient(
            transport=ASGITransport(app=_problem_app()), base_url="http://test",
        ) as ac:
            resp = await ac.post("/payload", json={"count": "many"})

        assert resp.status_code == 422
        body = resp.json()
        assert body["type"].endswith("/validation-error")
        assert "count" in body["errors"]


# ═════════════════════════════════════════════════════════════════════
# PAGINATION / SETTINGS
# ═════════════════════════════════════════════════════════════════════


class TestPaginationMeta:

    def test_middle_page(self):
        meta = PaginationMeta.build(page=2, page_size=10, total=25)
        assert meta.total_pages == 3
        assert meta.has_next and meta.has_prev

    def test_empty(self):
        meta = PaginationMeta.build(page=1, page_size=10, total=0)
        assert meta.total_pages == 0
        assert not meta.has_next and not meta.has_prev


class TestSettings:

    def test_default_balances(self):
        assert settings.default_balances == {"casual": 10, "sick": 10, "earned": 15}

    def test_self_approval_default(self):
        assert settings.ALLOW_SELF_APPROVAL is True
