"""Enums and constants for the leave tracker — matching database ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    admin = "admin"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveCategory(str, enum.Enum):
    casual = "casual"
    sick = "sick"
    earned = "earned"


class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# Statuses that block a new submission over the same dates
BLOCKING_LEAVE_STATUSES = (LeaveStatus.pending, LeaveStatus.approved)


# ── Holidays ────────────────────────────────────────────────────────

class HolidayType(str, enum.Enum):
    national = "national"
    regional = "regional"
    company = "company"


# ── Calendar ────────────────────────────────────────────────────────

WEEKEND_DAYS = frozenset({5, 6})  # Saturday, Sunday (date.weekday())

# ── Misc constants ──────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
