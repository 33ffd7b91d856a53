"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
  - *Brief              → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leaveflow.common.constants import LeaveCadence, LeaveStatus, LeaveUnit
from leaveflow.core_hr.schemas import EmployeeBrief


# ═════════════════════════════════════════════════════════════════════
# Embedded / shared
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeBrief(BaseModel):
    """Minimal leave type info embedded in leave responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    unit: LeaveUnit
    cadence: LeaveCadence


class AuditEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    changed_by_id: uuid.UUID
    previous_status: LeaveStatus
    new_status: LeaveStatus
    reason: Optional[str] = None
    created_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    default_allowance: Decimal = Field(..., gt=0, max_digits=6, decimal_places=2)
    unit: LeaveUnit = LeaveUnit.DAYS
    cadence: LeaveCadence = LeaveCadence.ANNUAL


class LeaveTypeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    default_allowance: Decimal
    unit: LeaveUnit
    cadence: LeaveCadence
    created_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """One balance row for a (employee, leave type, period)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    month: Optional[int] = None
    total: Decimal
    remaining: Decimal
    is_manual_override: bool
    is_locked: bool

    leave_type: Optional[LeaveTypeBrief] = None
    employee: Optional[EmployeeBrief] = None


class ManualBalanceRequest(BaseModel):
    """Hand-set a balance; marks it as a manual override."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int = Field(..., ge=2000, le=2100)
    month: Optional[int] = Field(None, ge=1, le=12)
    total: Decimal = Field(..., ge=0, max_digits=6, decimal_places=2)


class BulkRebaseRequest(BaseModel):
    leave_type_id: uuid.UUID
    year: int = Field(..., ge=2000, le=2100)
    month: Optional[int] = Field(None, ge=1, le=12, description="MONTHLY types only; defaults to the current month")
    new_total: Decimal = Field(..., ge=0, max_digits=6, decimal_places=2)
    protect_manual_changes: bool = True


class BulkRebaseOut(BaseModel):
    count: int


class BalanceLockRequest(BaseModel):
    is_locked: bool


# ═════════════════════════════════════════════════════════════════════
# Leave Request / Create / Actions
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for submitting a leave request."""

    leave_type_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")

    @model_validator(mode="after")
    def validate_range(self) -> LeaveRequestCreate:
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class StatusUpdateRequest(BaseModel):
    """Approve or deny: target is APPROVED_BY_MANAGER, APPROVED_BY_ADMIN or DENIED."""

    status: LeaveStatus
    reason: Optional[str] = Field(None, max_length=1000)


class CancellationDecisionRequest(BaseModel):
    approve: bool
    reason: Optional[str] = Field(None, max_length=1000)


# ═════════════════════════════════════════════════════════════════════
# Leave Request / Response
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    requested_days: int
    status: LeaveStatus
    skip_reason: Optional[str] = None
    approved_by_id: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    denied_by_id: Optional[uuid.UUID] = None
    denied_at: Optional[datetime] = None
    denial_reason: Optional[str] = None
    cancelled_by_id: Optional[uuid.UUID] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    status_before_cancellation: Optional[LeaveStatus] = None
    created_at: datetime

    # Filled by the service when loaded
    employee: Optional[EmployeeBrief] = None
    leave_type: Optional[LeaveTypeBrief] = None
    audit_trail: list[AuditEntryOut] = Field(default_factory=list)


class PendingApprovalOut(LeaveRequestOut):
    """Manager queue entry; flags clashes with teammates' approved leave."""

    has_overlap: bool = False
