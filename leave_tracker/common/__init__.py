"""Common module — shared utilities for the leave tracker."""

from leave_tracker.common.audit import AuditTrail, create_audit_entry, get_audit_history
from leave_tracker.common.constants import (
    BLOCKING_LEAVE_STATUSES,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    WEEKEND_DAYS,
    HolidayType,
    LeaveCategory,
    LeaveStatus,
    UserRole,
)
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
from leave_tracker.common.pagination import PaginatedResponse, PaginationMeta

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    "get_audit_history",
    # Constants / Enums
    "HolidayType",
    "LeaveCategory",
    "LeaveStatus",
    "UserRole",
    "BLOCKING_LEAVE_STATUSES",
    "WEEKEND_DAYS",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "InfrastructureError",
    "InsufficientBalanceError",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    "translate_store_errors",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
]
