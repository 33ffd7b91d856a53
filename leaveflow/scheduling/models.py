"""Scheduling ORM models: WorkSchedule, Holiday."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaveflow.common.constants import HolidayType
from leaveflow.database import Base

if TYPE_CHECKING:
    from leaveflow.core_hr.models import Employee

# Column names in Monday=0 … Sunday=6 order, matching date.weekday()
WEEKDAY_COLUMNS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class WorkSchedule(Base):
    """Weekly working pattern. At most one row may have ``is_default`` set."""

    __tablename__ = "work_schedules"
    __table_args__ = (
        sa.Index(
            "uq_work_schedules_single_default",
            "is_default",
            unique=True,
            postgresql_where=sa.text("is_default"),
            sqlite_where=sa.text("is_default = 1"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    monday: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    tuesday: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    wednesday: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    thursday: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    friday: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    saturday: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    sunday: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    start_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    end_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    is_default: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    employees: Mapped[list[Employee]] = relationship(back_populates="work_schedule")

    @property
    def working_weekdays(self) -> frozenset[int]:
        """Weekday numbers (0=Mon … 6=Sun) flagged as working."""
        return frozenset(
            i for i, column in enumerate(WEEKDAY_COLUMNS) if getattr(self, column)
        )

    def __repr__(self) -> str:
        return f"<WorkSchedule {self.name!r} default={self.is_default}>"


class Holiday(Base):
    __tablename__ = "holidays"
    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_holidays_date_range"),
        sa.Index("ix_holidays_range", "start_date", "end_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    type: Mapped[HolidayType] = mapped_column(
        sa.Enum(HolidayType, name="holiday_type", create_type=False),
        nullable=False,
    )
    # Only meaningful for EMPLOYEE holidays
    employee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    repeat_weekly: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    is_locked: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    employee: Mapped[Optional[Employee]] = relationship(foreign_keys=[employee_id])
