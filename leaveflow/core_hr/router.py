"""Core HR router — reporting lines and employee activation.

Routes:
    /employees/me/is-manager          — Does the caller have direct reports
    /employees/{id}/manager           — Set or clear the manager (admin)
    /employees/{id}                   — Soft-deactivate (admin)
    /employees/{id}/reactivate        — Reactivate (admin)
    /employees/{id}/direct-reports    — Direct reports (self or admin)
"""


import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.auth.dependencies import get_current_role, get_current_user, require_role
from leaveflow.common.constants import ADMIN_ROLES, UserRole
from leaveflow.common.exceptions import ForbiddenException
from leaveflow.core_hr.models import Employee
from leaveflow.core_hr.schemas import (
    EmployeeBrief,
    EmployeeOut,
    IsManagerOut,
    ManagerAssignmentRequest,
)
from leaveflow.core_hr.service import EmployeeService
from leaveflow.database import get_db

router = APIRouter(prefix="", tags=["employees"])


# ── GET /me/is-manager ──────────────────────────────────────────────

@router.get("/me/is-manager", response_model=IsManagerOut)
async def is_manager(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return IsManagerOut(is_manager=await EmployeeService.is_manager(db, employee.id))


# ── PATCH /{id}/manager ─────────────────────────────────────────────

@router.patch("/{employee_id}/manager", response_model=EmployeeOut)
async def assign_manager(
    employee_id: uuid.UUID,
    body: ManagerAssignmentRequest,
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Assign a manager; self-management and circular lines are rejected."""
    return await EmployeeService.assign_manager(db, employee_id, body.manager_id)


# ── DELETE /{id} ────────────────────────────────────────────────────

@router.delete("/{employee_id}", response_model=EmployeeOut)
async def deactivate_employee(
    employee_id: uuid.UUID,
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Soft-deactivate; the profile and its history are kept."""
    return await EmployeeService.deactivate(db, employee_id)


# ── POST /{id}/reactivate ───────────────────────────────────────────

@router.post("/{employee_id}/reactivate", response_model=EmployeeOut)
async def reactivate_employee(
    employee_id: uuid.UUID,
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeService.reactivate(db, employee_id)


# ── GET /{id}/direct-reports ────────────────────────────────────────

@router.get("/{employee_id}/direct-reports", response_model=list[EmployeeBrief])
async def direct_reports(
    employee_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    role: UserRole = Depends(get_current_role),
    db: AsyncSession = Depends(get_db),
):
    if employee.id != employee_id and role not in ADMIN_ROLES:
        raise ForbiddenException("You can only view your own direct reports.")
    return await EmployeeService.get_direct_reports(db, employee_id)
