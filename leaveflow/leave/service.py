"""Leave service layer — request lifecycle, approval queues, balances, leave types.

Business logic:
  - Submission with working-day count, balance check and manager bypass
  - Approve / deny through the closed transition table, debit on final approval
  - Withdrawal, cancellation requests and two-step cancellation approval
  - Manager and admin approval queues (with teammate overlap flag)
  - Balance views and admin balance maintenance (delegates to BalanceLedger)

Every operation runs all of its checks before its first write. Writes are
flushed only; the request transaction commits or rolls back as a unit.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional

import sqlalchemy as sa
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leaveflow.common.audit import LeaveRequestAudit, record_status_change
from leaveflow.common.constants import (
    ADMIN_ROLES,
    AWAITING_FINAL_APPROVAL,
    LeaveStatus,
    UserRole,
)
from leaveflow.common.exceptions import (
    ConflictError,
    ForbiddenException,
    InsufficientBalanceException,
    NotFoundException,
    ValidationException,
)
from leaveflow.core_hr.models import Employee
from leaveflow.core_hr.schemas import EmployeeBrief
from leaveflow.core_hr.service import EmployeeService
from leaveflow.leave.balances import BalanceLedger
from leaveflow.leave.bypass import resolve_bypass
from leaveflow.leave.models import LeaveBalance, LeaveRequest, LeaveType
from leaveflow.leave.schemas import (
    AuditEntryOut,
    BulkRebaseOut,
    LeaveBalanceOut,
    LeaveRequestOut,
    LeaveTypeBrief,
    LeaveTypeCreate,
    LeaveTypeOut,
    PendingApprovalOut,
)
from leaveflow.leave.state_machine import (
    LeaveAction,
    acting_as_manager,
    action_for_target,
    authorize,
    resolve,
)
from leaveflow.scheduling.service import HolidayService

logger = logging.getLogger(__name__)


def _column_values(obj: Any) -> dict[str, Any]:
    """Mapped column values only; relationships are never touched."""
    return {attr.key: getattr(obj, attr.key) for attr in sa.inspect(obj).mapper.column_attrs}


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: requests, transitions, queues, balances, types."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _get_request_or_404(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        with_details: bool = False,
    ) -> LeaveRequest:
        """Load a request with its employee (for the manager check)."""
        options = [selectinload(LeaveRequest.employee)]
        if with_details:
            options += [
                selectinload(LeaveRequest.leave_type),
                selectinload(LeaveRequest.audit_trail),
            ]
        query = select(LeaveRequest).where(LeaveRequest.id == request_id).options(*options)
        if with_details:
            query = query.execution_options(populate_existing=True)
        result = await db.execute(query)
        leave_request = result.scalars().first()
        if leave_request is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave_request

    @staticmethod
    async def _get_leave_type_or_404(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", str(leave_type_id))
        return leave_type

    @staticmethod
    async def _balance_for_request(
        db: AsyncSession,
        leave_request: LeaveRequest,
    ) -> LeaveBalance:
        """Balance row for the request's period; NotFound when absent."""
        leave_type = await LeaveService._get_leave_type_or_404(db, leave_request.leave_type_id)
        year, month = leave_type.period_for(leave_request.start_date)
        balance = await BalanceLedger.find(
            db, leave_request.employee_id, leave_type.id, year, month,
        )
        if balance is None:
            period = f"{year}-{month:02d}" if month else str(year)
            raise NotFoundException("LeaveBalance", f"{leave_type.name} {period}")
        return balance

    @staticmethod
    def _request_out(
        leave_request: LeaveRequest,
        *,
        employee: Optional[Employee] = None,
        leave_type: Optional[LeaveType] = None,
        audits: Optional[Iterable[LeaveRequestAudit]] = None,
        cls: type[LeaveRequestOut] = LeaveRequestOut,
        **extra: Any,
    ) -> LeaveRequestOut:
        """Build a response from columns, enriching only what the caller loaded."""
        return cls(
            **_column_values(leave_request),
            employee=EmployeeBrief.model_validate(employee) if employee else None,
            leave_type=LeaveTypeBrief.model_validate(leave_type) if leave_type else None,
            audit_trail=[AuditEntryOut.model_validate(a) for a in audits or ()],
            **extra,
        )

    @staticmethod
    def _balance_out(
        balance: LeaveBalance,
        *,
        employee: Optional[Employee] = None,
        leave_type: Optional[LeaveType] = None,
    ) -> LeaveBalanceOut:
        return LeaveBalanceOut(
            **_column_values(balance),
            employee=EmployeeBrief.model_validate(employee) if employee else None,
            leave_type=LeaveTypeBrief.model_validate(leave_type) if leave_type else None,
        )

    # ─────────────────────────────────────────────────────────────────
    # Submit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit_request(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        start_date: date,
        end_date: date,
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Submit a leave request.

        The range must contain at least one working day and the period's
        balance must cover it. Initial status is PENDING_MANAGER, or
        PENDING_ADMIN with a skip reason when manager approval is bypassed.
        Nothing is debited until final approval.
        """
        if end_date < start_date:
            raise ValidationException({"end_date": ["End date must be on or after the start date."]})

        employee = await EmployeeService.get_or_404(db, employee_id)
        leave_type = await LeaveService._get_leave_type_or_404(db, leave_type_id)

        days = await HolidayService.working_days_for(db, employee, start_date, end_date)
        if days == 0:
            raise ValidationException(
                {"dates": ["Your request does not contain any working days."]}
            )

        year, month = leave_type.period_for(start_date)
        balance = await BalanceLedger.find(db, employee_id, leave_type_id, year, month)
        remaining = balance.remaining if balance is not None else Decimal(0)
        if remaining < days:
            raise InsufficientBalanceException(remaining, Decimal(days))

        decision = await resolve_bypass(db, employee_id, today=today)
        status = LeaveStatus.PENDING_ADMIN if decision.bypass else LeaveStatus.PENDING_MANAGER

        leave_request = LeaveRequest(
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            start_date=start_date,
            end_date=end_date,
            requested_days=days,
            status=status,
            skip_reason=decision.reason,
        )
        db.add(leave_request)
        await db.flush()

        audit = await record_status_change(
            db,
            leave_request_id=leave_request.id,
            changed_by_id=employee_id,
            previous_status=status,
            new_status=status,
            reason="Request submitted by employee.",
        )
        logger.info(
            "Leave request %s submitted by %s: %s working day(s) of %s, status %s",
            leave_request.id, employee_id, days, leave_type.name, status.value,
        )
        return LeaveService._request_out(
            leave_request, employee=employee, leave_type=leave_type, audits=[audit],
        )

    # ─────────────────────────────────────────────────────────────────
    # Approve / Deny
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def transition_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        actor_role: UserRole,
        target_status: LeaveStatus,
        reason: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Move a request to APPROVED_BY_MANAGER, APPROVED_BY_ADMIN or DENIED.

        Final approval recomputes the working days and debits the matching
        balance with a guarded update before the status is written.
        """
        leave_request = await LeaveService._get_request_or_404(db, request_id)
        owner = leave_request.employee
        previous = leave_request.status

        action = action_for_target(previous, target_status)
        transition = resolve(previous, action)
        authorize(
            transition.gate,
            actor_id=actor_id,
            actor_role=actor_role,
            owner_id=owner.id,
            owner_manager_id=owner.manager_id,
        )

        reason = (reason or "").strip() or None
        if action is LeaveAction.deny and reason is None:
            raise ValidationException(
                {"reason": ["A reason is required when denying a request."]}
            )

        now = datetime.now(timezone.utc)
        if target_status is LeaveStatus.APPROVED_BY_ADMIN:
            balance = await LeaveService._balance_for_request(db, leave_request)
            days = await HolidayService.working_days_for(
                db, owner, leave_request.start_date, leave_request.end_date,
            )
            if days > 0:
                await BalanceLedger.debit(db, balance.id, days)

        if action is LeaveAction.deny:
            leave_request.denial_reason = reason
            leave_request.denied_by_id = actor_id
            leave_request.denied_at = now
            audit_reason = reason
        else:
            leave_request.approved_by_id = actor_id
            leave_request.approved_at = now
            as_manager = acting_as_manager(
                transition.gate, actor_id=actor_id, owner_manager_id=owner.manager_id,
            )
            audit_reason = (
                "Request status updated by manager"
                if as_manager
                else f"Request status updated by {actor_role.value}"
            )
        leave_request.status = target_status
        await db.flush()

        await record_status_change(
            db,
            leave_request_id=leave_request.id,
            changed_by_id=actor_id,
            previous_status=previous,
            new_status=target_status,
            reason=audit_reason,
        )
        return LeaveService._request_out(leave_request, employee=owner)

    # ─────────────────────────────────────────────────────────────────
    # Withdraw / Cancellation
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_pending(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
    ) -> LeaveRequestOut:
        """Owner withdraws a request not yet finally approved. No balance impact."""
        leave_request = await LeaveService._get_request_or_404(db, request_id)
        previous = leave_request.status

        transition = resolve(previous, LeaveAction.withdraw)
        authorize(
            transition.gate,
            actor_id=actor_id,
            actor_role=UserRole.employee,
            owner_id=leave_request.employee_id,
            owner_manager_id=leave_request.employee.manager_id,
        )

        leave_request.status = transition.target
        leave_request.cancelled_by_id = actor_id
        leave_request.cancelled_at = datetime.now(timezone.utc)
        leave_request.cancellation_reason = "Cancelled by employee."
        await db.flush()

        await record_status_change(
            db,
            leave_request_id=leave_request.id,
            changed_by_id=actor_id,
            previous_status=previous,
            new_status=transition.target,
            reason="Cancelled by employee.",
        )
        return LeaveService._request_out(leave_request, employee=leave_request.employee)

    @staticmethod
    async def request_cancellation(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Owner asks to cancel an approved request.

        Goes to the manager first, or straight to admin when manager
        approval is bypassed. The current status is snapshotted so a
        rejection can restore it.
        """
        leave_request = await LeaveService._get_request_or_404(db, request_id)
        previous = leave_request.status

        transition = resolve(previous, LeaveAction.request_cancellation)
        authorize(
            transition.gate,
            actor_id=actor_id,
            actor_role=UserRole.employee,
            owner_id=leave_request.employee_id,
            owner_manager_id=leave_request.employee.manager_id,
        )

        decision = await resolve_bypass(db, leave_request.employee_id, today=today)
        target = (
            LeaveStatus.CANCELLATION_PENDING_ADMIN if decision.bypass else transition.target
        )

        leave_request.status_before_cancellation = previous
        leave_request.status = target
        leave_request.cancellation_reason = "Cancellation requested by employee."
        await db.flush()

        await record_status_change(
            db,
            leave_request_id=leave_request.id,
            changed_by_id=actor_id,
            previous_status=previous,
            new_status=target,
            reason="Cancellation requested by employee.",
        )
        return LeaveService._request_out(leave_request, employee=leave_request.employee)

    @staticmethod
    async def resolve_cancellation(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        actor_role: UserRole,
        approve: bool,
        reason: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Approve or reject a pending cancellation.

        Manager approval forwards to admin; admin approval cancels the
        request and credits back the recomputed working days. Rejection
        restores the snapshotted status.
        """
        leave_request = await LeaveService._get_request_or_404(db, request_id)
        owner = leave_request.employee
        previous = leave_request.status

        action = LeaveAction.approve_cancellation if approve else LeaveAction.reject_cancellation
        transition = resolve(previous, action)
        authorize(
            transition.gate,
            actor_id=actor_id,
            actor_role=actor_role,
            owner_id=owner.id,
            owner_manager_id=owner.manager_id,
        )

        as_manager = acting_as_manager(
            transition.gate, actor_id=actor_id, owner_manager_id=owner.manager_id,
        )
        decided_by = "manager" if as_manager else actor_role.value

        if not approve:
            reason = (reason or "").strip() or "No reason given."
            target = leave_request.status_before_cancellation or LeaveStatus.APPROVED_BY_ADMIN
            leave_request.status = target
            leave_request.cancellation_reason = f"Cancellation rejected by {decided_by}: {reason}"
            audit_reason = f"Cancellation rejected: {reason}"
        elif transition.target is LeaveStatus.CANCELLATION_PENDING_ADMIN:
            target = transition.target
            leave_request.status = target
            audit_reason = f"Cancellation approved by {decided_by}."
        else:
            target = transition.target
            balance = await LeaveService._balance_for_request(db, leave_request)
            days = await HolidayService.working_days_for(
                db, owner, leave_request.start_date, leave_request.end_date,
            )
            if days > 0:
                await BalanceLedger.credit(db, balance.id, days)
            leave_request.status = target
            leave_request.cancelled_by_id = actor_id
            leave_request.cancelled_at = datetime.now(timezone.utc)
            audit_reason = "Cancellation approved by admin. Balance restored."
        await db.flush()

        await record_status_change(
            db,
            leave_request_id=leave_request.id,
            changed_by_id=actor_id,
            previous_status=previous,
            new_status=target,
            reason=audit_reason,
        )
        return LeaveService._request_out(leave_request, employee=owner)

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        actor_role: UserRole,
    ) -> LeaveRequestOut:
        """Visible to the owner, the owner's manager and admins."""
        leave_request = await LeaveService._get_request_or_404(
            db, request_id, with_details=True,
        )
        owner = leave_request.employee
        if not (
            actor_id == owner.id
            or actor_id == owner.manager_id
            or actor_role in ADMIN_ROLES
        ):
            raise ForbiddenException("You do not have access to this leave request.")
        return LeaveService._request_out(
            leave_request,
            employee=owner,
            leave_type=leave_request.leave_type,
            audits=leave_request.audit_trail,
        )

    @staticmethod
    async def my_requests(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> list[LeaveRequestOut]:
        """Own history, newest first, each with its audit trail."""
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.employee_id == employee_id)
            .options(
                selectinload(LeaveRequest.leave_type),
                selectinload(LeaveRequest.audit_trail),
            )
            .order_by(LeaveRequest.created_at.desc())
        )
        return [
            LeaveService._request_out(r, leave_type=r.leave_type, audits=r.audit_trail)
            for r in result.scalars().all()
        ]

    @staticmethod
    async def _queue(
        db: AsyncSession,
        statuses: Iterable[LeaveStatus],
        *,
        manager_id: Optional[uuid.UUID] = None,
    ) -> list[LeaveRequest]:
        """Requests in ``statuses``, oldest first; team-only when ``manager_id`` is set."""
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.status.in_(list(statuses)))
            .options(
                selectinload(LeaveRequest.employee),
                selectinload(LeaveRequest.leave_type),
            )
            .order_by(LeaveRequest.created_at)
        )
        if manager_id is not None:
            query = query.join(Employee, LeaveRequest.employee_id == Employee.id).where(
                Employee.manager_id == manager_id
            )
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def manager_pending_approvals(
        db: AsyncSession,
        manager_id: uuid.UUID,
    ) -> list[PendingApprovalOut]:
        """Direct reports' PENDING_MANAGER requests.

        ``has_overlap`` is set when another direct report already holds an
        APPROVED_BY_ADMIN request overlapping the same dates.
        """
        pending = await LeaveService._queue(
            db, [LeaveStatus.PENDING_MANAGER], manager_id=manager_id,
        )
        if not pending:
            return []
        approved = await LeaveService._queue(
            db, [LeaveStatus.APPROVED_BY_ADMIN], manager_id=manager_id,
        )

        out: list[PendingApprovalOut] = []
        for req in pending:
            has_overlap = any(
                other.employee_id != req.employee_id
                and other.start_date <= req.end_date
                and other.end_date >= req.start_date
                for other in approved
            )
            out.append(LeaveService._request_out(
                req,
                employee=req.employee,
                leave_type=req.leave_type,
                cls=PendingApprovalOut,
                has_overlap=has_overlap,
            ))
        return out

    @staticmethod
    async def manager_pending_cancellations(
        db: AsyncSession,
        manager_id: uuid.UUID,
    ) -> list[LeaveRequestOut]:
        requests = await LeaveService._queue(
            db, [LeaveStatus.CANCELLATION_PENDING_MANAGER], manager_id=manager_id,
        )
        return [
            LeaveService._request_out(r, employee=r.employee, leave_type=r.leave_type)
            for r in requests
        ]

    @staticmethod
    async def admin_pending_approvals(db: AsyncSession) -> list[LeaveRequestOut]:
        """APPROVED_BY_MANAGER and PENDING_ADMIN: both await final approval."""
        requests = await LeaveService._queue(db, AWAITING_FINAL_APPROVAL)
        return [
            LeaveService._request_out(r, employee=r.employee, leave_type=r.leave_type)
            for r in requests
        ]

    @staticmethod
    async def admin_pending_cancellations(db: AsyncSession) -> list[LeaveRequestOut]:
        requests = await LeaveService._queue(db, [LeaveStatus.CANCELLATION_PENDING_ADMIN])
        return [
            LeaveService._request_out(r, employee=r.employee, leave_type=r.leave_type)
            for r in requests
        ]

    # ─────────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def my_balances(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        today: Optional[date] = None,
    ) -> list[LeaveBalanceOut]:
        """Seed any missing current-period rows, then list every balance."""
        await BalanceLedger.ensure_seeded(db, employee_id, today=today)
        balances = await BalanceLedger.list_for_employee(db, employee_id)
        return [LeaveService._balance_out(b, leave_type=b.leave_type) for b in balances]

    @staticmethod
    async def list_balances(
        db: AsyncSession,
        *,
        year: Optional[int] = None,
        leave_type_id: Optional[uuid.UUID] = None,
    ) -> list[LeaveBalanceOut]:
        balances = await BalanceLedger.list_all(db, year=year, leave_type_id=leave_type_id)
        return [
            LeaveService._balance_out(b, employee=b.employee, leave_type=b.leave_type)
            for b in balances
        ]

    @staticmethod
    async def set_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        month: Optional[int],
        total: Decimal,
    ) -> LeaveBalanceOut:
        balance = await BalanceLedger.manual_set(
            db, employee_id, leave_type_id, year, month, total,
        )
        return LeaveService._balance_out(balance)

    @staticmethod
    async def bulk_rebase_balances(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        year: int,
        new_total: Decimal,
        protect_manual_changes: bool,
        *,
        month: Optional[int] = None,
    ) -> BulkRebaseOut:
        count = await BalanceLedger.bulk_rebase(
            db, leave_type_id, year, new_total, protect_manual_changes, month=month,
        )
        return BulkRebaseOut(count=count)

    @staticmethod
    async def set_balance_lock(
        db: AsyncSession,
        balance_id: uuid.UUID,
        locked: bool,
    ) -> LeaveBalanceOut:
        balance = await BalanceLedger.set_lock(db, balance_id, locked)
        logger.info("Balance %s %s", balance_id, "locked" if locked else "unlocked")
        return LeaveService._balance_out(balance)

    # ─────────────────────────────────────────────────────────────────
    # Leave Types
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def list_leave_types(db: AsyncSession) -> list[LeaveTypeOut]:
        result = await db.execute(select(LeaveType).order_by(LeaveType.name))
        return [LeaveTypeOut.model_validate(lt) for lt in result.scalars().all()]

    @staticmethod
    async def create_leave_type(
        db: AsyncSession,
        data: LeaveTypeCreate,
    ) -> LeaveTypeOut:
        existing = await db.execute(select(LeaveType.id).where(LeaveType.name == data.name))
        if existing.scalar() is not None:
            raise ConflictError("name", data.name)

        leave_type = LeaveType(**data.model_dump())
        db.add(leave_type)
        await db.flush()
        logger.info("Leave type %s created (%s, %s)", leave_type.name, leave_type.unit.value, leave_type.cadence.value)
        return LeaveTypeOut.model_validate(leave_type)
