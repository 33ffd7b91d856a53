"""Leave ORM models: LeaveType, LeaveBalance, LeaveRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaveflow.common.constants import LeaveCadence, LeaveStatus, LeaveUnit
from leaveflow.database import Base

if TYPE_CHECKING:
    from leaveflow.common.audit import LeaveRequestAudit
    from leaveflow.core_hr.models import Employee


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeaveType(Base):
    __tablename__ = "leave_types"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    default_allowance: Mapped[Decimal] = mapped_column(sa.Numeric(6, 2), nullable=False)
    unit: Mapped[LeaveUnit] = mapped_column(
        sa.Enum(LeaveUnit, name="leave_unit", create_type=False),
        default=LeaveUnit.DAYS,
        nullable=False,
    )
    cadence: Mapped[LeaveCadence] = mapped_column(
        sa.Enum(LeaveCadence, name="leave_cadence", create_type=False),
        default=LeaveCadence.ANNUAL,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )

    # Relationships
    balances: Mapped[list[LeaveBalance]] = relationship(back_populates="leave_type")
    requests: Mapped[list[LeaveRequest]] = relationship(back_populates="leave_type")

    def period_for(self, day: date) -> tuple[int, Optional[int]]:
        """Balance period ``(year, month)`` covering ``day``; month only for MONTHLY."""
        month = day.month if self.cadence is LeaveCadence.MONTHLY else None
        return day.year, month


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        # month is NULL for ANNUAL types, so uniqueness keys on coalesce(month, 0)
        sa.Index(
            "uq_leave_balance_period",
            "employee_id",
            "leave_type_id",
            "year",
            sa.text("coalesce(month, 0)"),
            unique=True,
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    month: Mapped[Optional[int]] = mapped_column(sa.Integer)
    total: Mapped[Decimal] = mapped_column(sa.Numeric(6, 2), nullable=False)
    # Not clamped: may go above total after credits
    remaining: Mapped[Decimal] = mapped_column(sa.Numeric(6, 2), nullable=False)
    is_manual_override: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, nullable=False
    )
    is_locked: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="leave_balances")
    leave_type: Mapped[LeaveType] = relationship(back_populates="balances")


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_requests_date_range"),
        sa.Index("ix_leave_requests_employee_status", "employee_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    # Working days counted at submission; approval and credit recompute
    requested_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", create_type=False),
        nullable=False,
    )
    skip_reason: Mapped[Optional[str]] = mapped_column(sa.Text)

    approved_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    denied_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    denied_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    denial_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    cancelled_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    cancellation_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    # Snapshot restored when a cancellation is rejected
    status_before_cancellation: Mapped[Optional[LeaveStatus]] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", create_type=False)
    )

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    employee: Mapped[Employee] = relationship(
        back_populates="leave_requests", foreign_keys=[employee_id]
    )
    leave_type: Mapped[LeaveType] = relationship(back_populates="requests")
    audit_trail: Mapped[list[LeaveRequestAudit]] = relationship(
        "LeaveRequestAudit",
        order_by="LeaveRequestAudit.created_at",
        viewonly=True,
    )
