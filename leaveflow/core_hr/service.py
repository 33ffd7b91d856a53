"""Core HR service layer — manager assignment, activation, reporting lines.

Uses:
  - ``would_create_cycle`` from leaveflow.core_hr.hierarchy
  - ``NotFoundException / ValidationException`` from leaveflow.common.exceptions
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.exceptions import NotFoundException, ValidationException
from leaveflow.core_hr.hierarchy import would_create_cycle
from leaveflow.core_hr.models import Employee
from leaveflow.core_hr.schemas import EmployeeBrief, EmployeeOut

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Async operations on employee profiles and reporting lines."""

    @staticmethod
    async def get_or_404(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    # ── Reporting lines ─────────────────────────────────────────────

    @staticmethod
    async def _manager_lookup(db: AsyncSession) -> dict[uuid.UUID, Optional[uuid.UUID]]:
        result = await db.execute(select(Employee.id, Employee.manager_id))
        return {row.id: row.manager_id for row in result.all()}

    @staticmethod
    async def would_create_cycle(
        db: AsyncSession,
        employee_id: uuid.UUID,
        proposed_manager_id: uuid.UUID,
    ) -> bool:
        """True if ``employee_id`` sits on the proposed manager's upward chain."""
        lookup = await EmployeeService._manager_lookup(db)
        return would_create_cycle(lookup, employee_id, proposed_manager_id)

    @staticmethod
    async def assign_manager(
        db: AsyncSession,
        employee_id: uuid.UUID,
        manager_id: Optional[uuid.UUID],
    ) -> EmployeeOut:
        """Set or clear an employee's manager.

        Rejects self-management, unknown managers and assignments that
        would close a reporting loop.
        """
        employee = await EmployeeService.get_or_404(db, employee_id)

        if manager_id is not None:
            if manager_id == employee_id:
                raise ValidationException(
                    {"manager_id": ["An employee cannot be their own manager."]}
                )
            if await db.get(Employee, manager_id) is None:
                raise ValidationException(
                    {"manager_id": ["Selected manager does not exist."]}
                )
            if await EmployeeService.would_create_cycle(db, employee_id, manager_id):
                raise ValidationException(
                    {"manager_id": [
                        "Invalid manager selection: would create a circular reporting line."
                    ]}
                )

        previous = employee.manager_id
        employee.manager_id = manager_id
        await db.flush()

        logger.info(
            "Employee %s manager changed: %s -> %s", employee_id, previous, manager_id,
        )
        return EmployeeOut.model_validate(employee)

    @staticmethod
    async def is_manager(db: AsyncSession, employee_id: uuid.UUID) -> bool:
        """An employee is a manager iff at least one profile reports to them."""
        result = await db.execute(
            select(func.count()).select_from(Employee).where(
                Employee.manager_id == employee_id
            )
        )
        return result.scalar_one() > 0

    @staticmethod
    async def get_direct_reports(
        db: AsyncSession,
        manager_id: uuid.UUID,
    ) -> list[EmployeeBrief]:
        await EmployeeService.get_or_404(db, manager_id)
        result = await db.execute(
            select(Employee)
            .where(Employee.manager_id == manager_id)
            .order_by(Employee.first_name, Employee.last_name)
        )
        return [EmployeeBrief.model_validate(e) for e in result.scalars().all()]

    # ── Activation ──────────────────────────────────────────────────

    @staticmethod
    async def deactivate(db: AsyncSession, employee_id: uuid.UUID) -> EmployeeOut:
        """Soft-delete: profiles are never removed."""
        employee = await EmployeeService.get_or_404(db, employee_id)
        employee.is_active = False
        await db.flush()
        logger.info("Employee %s deactivated", employee_id)
        return EmployeeOut.model_validate(employee)

    @staticmethod
    async def reactivate(db: AsyncSession, employee_id: uuid.UUID) -> EmployeeOut:
        employee = await EmployeeService.get_or_404(db, employee_id)
        employee.is_active = True
        await db.flush()
        logger.info("Employee %s reactivated", employee_id)
        return EmployeeOut.model_validate(employee)
