"""Balance ledger — per employee / leave type / period balances.

Business logic:
  - Lazy seeding from the leave type's default allowance
  - Manual set (marks the row as a manual override)
  - Bulk rebase, shifting ``remaining`` by the change in ``total``
  - Guarded debit on final approval, credit on approved cancellation

Every method flushes but never commits; the request transaction owns that.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leaveflow.common.constants import LeaveCadence
from leaveflow.common.exceptions import (
    InsufficientBalanceException,
    NotFoundException,
    ValidationException,
)
from leaveflow.core_hr.models import Employee
from leaveflow.leave.models import LeaveBalance, LeaveType

logger = logging.getLogger(__name__)


def _period_filter(year: int, month: Optional[int]):
    month_clause = (
        LeaveBalance.month.is_(None) if month is None else LeaveBalance.month == month
    )
    return (LeaveBalance.year == year, month_clause)


class BalanceLedger:
    """Async balance operations. All amounts are Decimals; days may be ints."""

    # ── Lookups ─────────────────────────────────────────────────────

    @staticmethod
    async def _get_leave_type(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", str(leave_type_id))
        return leave_type

    @staticmethod
    async def find(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        month: Optional[int] = None,
    ) -> Optional[LeaveBalance]:
        result = await db.execute(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type_id == leave_type_id,
                *_period_filter(year, month),
            )
        )
        return result.scalars().first()

    @staticmethod
    async def list_for_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> list[LeaveBalance]:
        result = await db.execute(
            select(LeaveBalance)
            .join(LeaveType, LeaveBalance.leave_type_id == LeaveType.id)
            .where(LeaveBalance.employee_id == employee_id)
            .options(selectinload(LeaveBalance.leave_type))
            .order_by(LeaveType.name, LeaveBalance.year.desc(), LeaveBalance.month)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_all(
        db: AsyncSession,
        *,
        year: Optional[int] = None,
        leave_type_id: Optional[uuid.UUID] = None,
    ) -> list[LeaveBalance]:
        query = (
            select(LeaveBalance)
            .options(
                selectinload(LeaveBalance.leave_type),
                selectinload(LeaveBalance.employee),
            )
            .order_by(LeaveBalance.year.desc(), LeaveBalance.month)
        )
        if year is not None:
            query = query.where(LeaveBalance.year == year)
        if leave_type_id is not None:
            query = query.where(LeaveBalance.leave_type_id == leave_type_id)
        result = await db.execute(query)
        return list(result.scalars().all())

    # ── Seeding / admin writes ──────────────────────────────────────

    @staticmethod
    async def ensure_seeded(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        today: Optional[date] = None,
    ) -> int:
        """Create any missing current-period balance, one per leave type.

        Idempotent. Returns the number of rows created.
        """
        today = today or datetime.now(timezone.utc).date()
        leave_types = (await db.execute(select(LeaveType))).scalars().all()

        created = 0
        for leave_type in leave_types:
            year, month = leave_type.period_for(today)
            if await BalanceLedger.find(db, employee_id, leave_type.id, year, month):
                continue
            db.add(LeaveBalance(
                employee_id=employee_id,
                leave_type_id=leave_type.id,
                year=year,
                month=month,
                total=leave_type.default_allowance,
                remaining=leave_type.default_allowance,
            ))
            created += 1

        if created:
            await db.flush()
            logger.info("Seeded %d balance(s) for employee %s", created, employee_id)
        return created

    @staticmethod
    async def manual_set(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        month: Optional[int],
        total: Decimal,
    ) -> LeaveBalance:
        """Upsert a hand-set balance; ``remaining`` is reset to ``total``."""
        leave_type = await BalanceLedger._get_leave_type(db, leave_type_id)
        if await db.get(Employee, employee_id) is None:
            raise NotFoundException("Employee", str(employee_id))

        if leave_type.cadence is LeaveCadence.MONTHLY:
            if month is None:
                raise ValidationException(
                    {"month": [f"{leave_type.name} is monthly; a month is required."]}
                )
        else:
            month = None

        balance = await BalanceLedger.find(db, employee_id, leave_type_id, year, month)
        if balance is None:
            balance = LeaveBalance(
                employee_id=employee_id,
                leave_type_id=leave_type_id,
                year=year,
                month=month,
            )
            db.add(balance)
        balance.total = total
        balance.remaining = total
        balance.is_manual_override = True
        await db.flush()

        logger.info(
            "Balance for employee %s / %s %s-%s manually set to %s",
            employee_id, leave_type.name, year, month or "", total,
        )
        return balance

    @staticmethod
    async def bulk_rebase(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        year: int,
        new_total: Decimal,
        protect_manual_changes: bool,
        *,
        month: Optional[int] = None,
    ) -> int:
        """Rebase every unprotected balance of a leave type for one period.

        Updated rows keep their consumption: ``remaining`` moves by
        ``new_total - total``. Locked rows are never touched; manual
        overrides are skipped when ``protect_manual_changes`` is set.
        Employees with no row for the period get a fresh one. Returns the
        number of rows updated plus created.
        """
        leave_type = await BalanceLedger._get_leave_type(db, leave_type_id)
        if leave_type.cadence is LeaveCadence.MONTHLY:
            month = month or datetime.now(timezone.utc).month
        else:
            month = None

        query = select(LeaveBalance).where(
            LeaveBalance.leave_type_id == leave_type_id,
            *_period_filter(year, month),
            LeaveBalance.is_locked.is_(False),
        )
        if protect_manual_changes:
            query = query.where(LeaveBalance.is_manual_override.is_(False))
        to_update = (await db.execute(query)).scalars().all()

        for balance in to_update:
            balance.remaining = balance.remaining + (new_total - balance.total)
            balance.total = new_total
            balance.is_manual_override = False

        has_row = (
            select(LeaveBalance.id)
            .where(
                LeaveBalance.employee_id == Employee.id,
                LeaveBalance.leave_type_id == leave_type_id,
                *_period_filter(year, month),
            )
            .exists()
        )
        missing = (await db.execute(select(Employee.id).where(~has_row))).scalars().all()
        for employee_id in missing:
            db.add(LeaveBalance(
                employee_id=employee_id,
                leave_type_id=leave_type_id,
                year=year,
                month=month,
                total=new_total,
                remaining=new_total,
            ))

        await db.flush()
        count = len(to_update) + len(missing)
        logger.info(
            "Bulk rebase %s %s-%s to %s: %d updated, %d created",
            leave_type.name, year, month or "", new_total, len(to_update), len(missing),
        )
        return count

    @staticmethod
    async def set_lock(
        db: AsyncSession,
        balance_id: uuid.UUID,
        locked: bool,
    ) -> LeaveBalance:
        balance = await db.get(LeaveBalance, balance_id)
        if balance is None:
            raise NotFoundException("LeaveBalance", str(balance_id))
        balance.is_locked = locked
        await db.flush()
        return balance

    # ── Debit / credit ──────────────────────────────────────────────

    @staticmethod
    async def debit(
        db: AsyncSession,
        balance_id: uuid.UUID,
        days: Decimal | int,
    ) -> LeaveBalance:
        """Subtract ``days`` from ``remaining`` in one conditional UPDATE.

        The ``remaining >= days`` guard makes concurrent approvals safe: the
        loser matches zero rows and gets InsufficientBalanceException.
        """
        amount = Decimal(days)
        result = await db.execute(
            update(LeaveBalance)
            .where(LeaveBalance.id == balance_id, LeaveBalance.remaining >= amount)
            .values(remaining=LeaveBalance.remaining - amount)
            .execution_options(synchronize_session=False)
        )
        balance = await db.get(LeaveBalance, balance_id, populate_existing=True)
        if balance is None:
            raise NotFoundException("LeaveBalance", str(balance_id))
        if result.rowcount == 0:
            logger.warning(
                "Debit of %s refused on balance %s (remaining %s)",
                amount, balance_id, balance.remaining,
            )
            raise InsufficientBalanceException(balance.remaining, amount)

        logger.info("Debited %s from balance %s, remaining %s", amount, balance_id, balance.remaining)
        return balance

    @staticmethod
    async def credit(
        db: AsyncSession,
        balance_id: uuid.UUID,
        days: Decimal | int,
    ) -> LeaveBalance:
        """Add ``days`` back to ``remaining``; not clamped to ``total``."""
        amount = Decimal(days)
        result = await db.execute(
            update(LeaveBalance)
            .where(LeaveBalance.id == balance_id)
            .values(remaining=LeaveBalance.remaining + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundException("LeaveBalance", str(balance_id))
        balance = await db.get(LeaveBalance, balance_id, populate_existing=True)

        logger.info("Credited %s to balance %s, remaining %s", amount, balance_id, balance.remaining)
        return balance
