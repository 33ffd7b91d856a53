"""Manager-approval bypass resolution."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import (
    SKIP_REASON_MANAGER_ON_LEAVE,
    SKIP_REASON_NO_MANAGER,
    LeaveStatus,
)
from leaveflow.core_hr.models import Employee
from leaveflow.leave.models import LeaveRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BypassDecision:
    bypass: bool
    reason: Optional[str] = None


NO_BYPASS = BypassDecision(bypass=False)


async def manager_on_leave(
    db: AsyncSession,
    manager_id: uuid.UUID,
    today: date,
) -> bool:
    """True if the manager holds a fully approved request covering ``today``."""
    result = await db.execute(
        select(LeaveRequest.id)
        .where(
            LeaveRequest.employee_id == manager_id,
            LeaveRequest.status == LeaveStatus.APPROVED_BY_ADMIN,
            LeaveRequest.start_date <= today,
            LeaveRequest.end_date >= today,
        )
        .limit(1)
    )
    return result.scalar() is not None


async def resolve_bypass(
    db: AsyncSession,
    employee_id: uuid.UUID,
    *,
    today: Optional[date] = None,
) -> BypassDecision:
    """Decide whether manager approval is skipped for ``employee_id``.

    Skipped when the employee has no manager, or the manager is on approved
    leave today. Any lookup failure falls back to no bypass so requests are
    still routed through the manager.
    """
    today = today or datetime.now(timezone.utc).date()
    try:
        # Savepoint: a failed lookup must not abort the caller's transaction
        async with db.begin_nested():
            employee = await db.get(Employee, employee_id)
            if employee is None:
                logger.warning(
                    "Bypass check: employee %s not found, routing to manager", employee_id,
                )
                return NO_BYPASS

            if employee.manager_id is None:
                return BypassDecision(bypass=True, reason=SKIP_REASON_NO_MANAGER)

            if await manager_on_leave(db, employee.manager_id, today):
                return BypassDecision(bypass=True, reason=SKIP_REASON_MANAGER_ON_LEAVE)
    except SQLAlchemyError:
        logger.warning(
            "Bypass check failed for employee %s, routing to manager",
            employee_id,
            exc_info=True,
        )
        return NO_BYPASS

    return NO_BYPASS
