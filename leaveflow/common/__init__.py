"""Common module — shared utilities for LeaveFlow."""

from leaveflow.common.audit import LeaveRequestAudit, record_status_change
from leaveflow.common.constants import (
    ADMIN_ROLES,
    HolidayType,
    LeaveCadence,
    LeaveStatus,
    LeaveUnit,
    UserRole,
)
from leaveflow.common.exceptions import (
    AppException,
    ConfigurationException,
    ConflictError,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)

__all__ = [
    # Audit
    "LeaveRequestAudit",
    "record_status_change",
    # Constants / Enums
    "ADMIN_ROLES",
    "HolidayType",
    "LeaveCadence",
    "LeaveStatus",
    "LeaveUnit",
    "UserRole",
    # Exceptions
    "AppException",
    "ConfigurationException",
    "ConflictError",
    "ForbiddenException",
    "InsufficientBalanceException",
    "InvalidTransitionException",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
]
