"""Leave router — requests, transitions, approval queues, balances, leave types.

All endpoints require authentication. Admin-only endpoints use require_role;
manager and owner checks happen in the service against the request itself.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.auth.dependencies import get_current_role, get_current_user, require_role
from leaveflow.common.constants import UserRole
from leaveflow.core_hr.models import Employee
from leaveflow.database import get_db
from leaveflow.leave.schemas import (
    BalanceLockRequest,
    BulkRebaseOut,
    BulkRebaseRequest,
    CancellationDecisionRequest,
    LeaveBalanceOut,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveTypeCreate,
    LeaveTypeOut,
    ManualBalanceRequest,
    PendingApprovalOut,
    StatusUpdateRequest,
)
from leaveflow.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
async def submit_request(
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit a leave request. Validates working days and balance."""
    return await LeaveService.submit_request(
        db, employee.id, body.leave_type_id, body.start_date, body.end_date,
    )


# ── GET /requests/mine ──────────────────────────────────────────────

@router.get("/requests/mine", response_model=list[LeaveRequestOut])
async def my_requests(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.my_requests(db, employee.id)


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    role: UserRole = Depends(get_current_role),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_request(db, request_id, employee.id, role)


# ── PATCH /requests/{id}/status ─────────────────────────────────────

@router.patch("/requests/{request_id}/status", response_model=LeaveRequestOut)
async def update_status(
    request_id: uuid.UUID,
    body: StatusUpdateRequest,
    employee: Employee = Depends(get_current_user),
    role: UserRole = Depends(get_current_role),
    db: AsyncSession = Depends(get_db),
):
    """Approve or deny. Final approval debits the balance."""
    return await LeaveService.transition_request(
        db, request_id, employee.id, role, body.status, body.reason,
    )


# ── PATCH /requests/{id}/cancel ─────────────────────────────────────

@router.patch("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_request(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Withdraw a request that is not yet finally approved."""
    return await LeaveService.cancel_pending(db, request_id, employee.id)


# ── PATCH /requests/{id}/request-cancellation ───────────────────────

@router.patch("/requests/{request_id}/request-cancellation", response_model=LeaveRequestOut)
async def request_cancellation(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.request_cancellation(db, request_id, employee.id)


# ── PATCH /requests/{id}/cancellation-approval ──────────────────────

@router.patch("/requests/{request_id}/cancellation-approval", response_model=LeaveRequestOut)
async def cancellation_approval(
    request_id: uuid.UUID,
    body: CancellationDecisionRequest,
    employee: Employee = Depends(get_current_user),
    role: UserRole = Depends(get_current_role),
    db: AsyncSession = Depends(get_db),
):
    """Approve or reject a cancellation. Admin approval restores the balance."""
    return await LeaveService.resolve_cancellation(
        db, request_id, employee.id, role, body.approve, body.reason,
    )


# ═════════════════════════════════════════════════════════════════════
# Queues
# ═════════════════════════════════════════════════════════════════════


@router.get("/manager/pending-approvals", response_model=list[PendingApprovalOut])
async def manager_pending_approvals(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Direct reports' requests awaiting the caller, flagged on teammate overlap."""
    return await LeaveService.manager_pending_approvals(db, employee.id)


@router.get("/manager/pending-cancellations", response_model=list[LeaveRequestOut])
async def manager_pending_cancellations(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.manager_pending_cancellations(db, employee.id)


@router.get("/admin/pending-approvals", response_model=list[LeaveRequestOut])
async def admin_pending_approvals(
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.admin_pending_approvals(db)


@router.get("/admin/pending-cancellations", response_model=list[LeaveRequestOut])
async def admin_pending_cancellations(
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.admin_pending_cancellations(db)


# ═════════════════════════════════════════════════════════════════════
# Balances
# ═════════════════════════════════════════════════════════════════════


# ── GET /balances/mine ──────────────────────────────────────────────

@router.get("/balances/mine", response_model=list[LeaveBalanceOut])
async def my_balances(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Own balances; missing current-period rows are created on first read."""
    return await LeaveService.my_balances(db, employee.id)


# ── GET /balances ───────────────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def list_balances(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    leave_type_id: Optional[uuid.UUID] = Query(None),
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.list_balances(db, year=year, leave_type_id=leave_type_id)


# ── POST /balances ──────────────────────────────────────────────────

@router.post("/balances", response_model=LeaveBalanceOut)
async def set_balance(
    body: ManualBalanceRequest,
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Hand-set a balance (upsert). Marks it as a manual override."""
    return await LeaveService.set_balance(
        db, body.employee_id, body.leave_type_id, body.year, body.month, body.total,
    )


# ── POST /balances/bulk-update ──────────────────────────────────────

@router.post("/balances/bulk-update", response_model=BulkRebaseOut)
async def bulk_update_balances(
    body: BulkRebaseRequest,
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.bulk_rebase_balances(
        db,
        body.leave_type_id,
        body.year,
        body.new_total,
        body.protect_manual_changes,
        month=body.month,
    )


# ── PATCH /balances/{id}/lock ───────────────────────────────────────

@router.patch("/balances/{balance_id}/lock", response_model=LeaveBalanceOut)
async def lock_balance(
    balance_id: uuid.UUID,
    body: BalanceLockRequest,
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.set_balance_lock(db, balance_id, body.is_locked)


# ═════════════════════════════════════════════════════════════════════
# Leave Types
# ═════════════════════════════════════════════════════════════════════


@router.get("/types", response_model=list[LeaveTypeOut])
async def list_leave_types(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.list_leave_types(db)


@router.post("/types", response_model=LeaveTypeOut, status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.create_leave_type(db, body)
