"""Append-only leave request audit trail: model and async helper."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from leaveflow.common.constants import LeaveStatus
from leaveflow.database import Base

logger = logging.getLogger(__name__)


# ── Immutable audit table ───────────────────────────────────────────

class LeaveRequestAudit(Base):
    """One row per status change of a leave request. Never updated or deleted."""

    __tablename__ = "leave_request_audits"
    __table_args__ = (
        sa.Index("ix_leave_request_audits_request", "leave_request_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    leave_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_requests.id"), nullable=False,
    )
    changed_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    previous_status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", create_type=False),
        nullable=False,
    )
    new_status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", create_type=False),
        nullable=False,
    )
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<LeaveRequestAudit {self.leave_request_id} "
            f"{self.previous_status.value}->{self.new_status.value}>"
        )


# ── Helper to append an entry ───────────────────────────────────────

async def record_status_change(
    session: AsyncSession,
    *,
    leave_request_id: uuid.UUID,
    changed_by_id: uuid.UUID,
    previous_status: LeaveStatus,
    new_status: LeaveStatus,
    reason: Optional[str] = None,
) -> LeaveRequestAudit:
    """
    Append and flush an audit row for a leave request status change.

    Runs inside the caller's transaction, so the row is committed or
    rolled back together with the transition it documents.

    Args:
        session: Async SQLAlchemy session.
        leave_request_id: The request whose status changed.
        changed_by_id: Employee who performed the action.
        previous_status: Status before the change.
        new_status: Status after the change (equal to previous on submission).
        reason: Actor-supplied or system-generated reason.
    """
    entry = LeaveRequestAudit(
        leave_request_id=leave_request_id,
        changed_by_id=changed_by_id,
        previous_status=previous_status,
        new_status=new_status,
        reason=reason,
    )
    session.add(entry)
    await session.flush()
    logger.info(
        "Leave request %s: %s -> %s by %s",
        leave_request_id, previous_status.value, new_status.value, changed_by_id,
    )
    return entry
