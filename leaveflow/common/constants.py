"""Enums and constants for LeaveFlow — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    admin = "admin"
    super_admin = "super_admin"


ADMIN_ROLES: frozenset[UserRole] = frozenset({UserRole.admin, UserRole.super_admin})


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    PENDING_MANAGER = "PENDING_MANAGER"
    PENDING_ADMIN = "PENDING_ADMIN"
    APPROVED_BY_MANAGER = "APPROVED_BY_MANAGER"
    APPROVED_BY_ADMIN = "APPROVED_BY_ADMIN"
    DENIED = "DENIED"
    CANCELLED = "CANCELLED"
    CANCELLATION_PENDING_MANAGER = "CANCELLATION_PENDING_MANAGER"
    CANCELLATION_PENDING_ADMIN = "CANCELLATION_PENDING_ADMIN"


TERMINAL_STATUSES: frozenset[LeaveStatus] = frozenset(
    {LeaveStatus.DENIED, LeaveStatus.CANCELLED}
)

# Requests an admin sees as "awaiting final approval"
AWAITING_FINAL_APPROVAL: tuple[LeaveStatus, ...] = (
    LeaveStatus.APPROVED_BY_MANAGER,
    LeaveStatus.PENDING_ADMIN,
)


class LeaveUnit(str, enum.Enum):
    DAYS = "DAYS"
    HOURS = "HOURS"


class LeaveCadence(str, enum.Enum):
    ANNUAL = "ANNUAL"
    MONTHLY = "MONTHLY"


# ── Scheduling ──────────────────────────────────────────────────────

class HolidayType(str, enum.Enum):
    NATIONAL = "NATIONAL"
    COMPANY = "COMPANY"
    TEAM = "TEAM"
    EMPLOYEE = "EMPLOYEE"


# Holiday types that apply to every employee
ORG_WIDE_HOLIDAY_TYPES: tuple[HolidayType, ...] = (
    HolidayType.NATIONAL,
    HolidayType.COMPANY,
    HolidayType.TEAM,
)


# ── Bypass reasons ──────────────────────────────────────────────────

SKIP_REASON_NO_MANAGER = "No manager assigned."
SKIP_REASON_MANAGER_ON_LEAVE = "Manager is currently on leave."
