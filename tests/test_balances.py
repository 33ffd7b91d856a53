"""Balance ledger — seeding, manual set, bulk rebase, debit/credit, locking."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import LeaveCadence
from leaveflow.common.exceptions import (
    ConflictError,
    InsufficientBalanceException,
    NotFoundException,
    ValidationException,
)
from leaveflow.leave.balances import BalanceLedger
from leaveflow.leave.models import LeaveBalance
from leaveflow.leave.schemas import LeaveTypeCreate
from leaveflow.leave.service import LeaveService
from tests.conftest import seed_balance, seed_employee, seed_leave_type

TODAY = date(2026, 3, 4)


async def _balance_count(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(LeaveBalance))).scalar_one()


# ═════════════════════════════════════════════════════════════════════
# 1. Seeding
# ═════════════════════════════════════════════════════════════════════


class TestEnsureSeeded:

    async def test_seeds_one_row_per_leave_type(self, db: AsyncSession):
        emp = await seed_employee(db)
        annual = await seed_leave_type(db, name="Annual Leave", default_allowance=Decimal("20"))
        wfh = await seed_leave_type(
            db, name="Work from home", default_allowance=Decimal("4"),
            cadence=LeaveCadence.MONTHLY,
        )

        created = await BalanceLedger.ensure_seeded(db, emp.id, today=TODAY)

        assert created == 2
        annual_row = await BalanceLedger.find(db, emp.id, annual.id, 2026)
        assert annual_row.month is None
        assert annual_row.total == annual_row.remaining == Decimal("20")
        wfh_row = await BalanceLedger.find(db, emp.id, wfh.id, 2026, 3)
        assert wfh_row.total == Decimal("4")
        assert wfh_row.is_manual_override is False

    async def test_idempotent(self, db: AsyncSession, annual_leave):
        emp = await seed_employee(db)

        assert await BalanceLedger.ensure_seeded(db, emp.id, today=TODAY) == 1
        assert await BalanceLedger.ensure_seeded(db, emp.id, today=TODAY) == 0
        assert await _balance_count(db) == 1

    async def test_existing_row_left_alone(self, db: AsyncSession, annual_leave):
        emp = await seed_employee(db)
        existing = await seed_balance(
            db, emp.id, annual_leave.id, total=Decimal("25"), remaining=Decimal("3"),
        )

        assert await BalanceLedger.ensure_seeded(db, emp.id, today=TODAY) == 0
        await db.refresh(existing)
        assert existing.remaining == Decimal("3")

    async def test_new_month_gets_new_monthly_row(self, db: AsyncSession):
        emp = await seed_employee(db)
        await seed_leave_type(
            db, name="Work from home", default_allowance=Decimal("4"),
            cadence=LeaveCadence.MONTHLY,
        )

        await BalanceLedger.ensure_seeded(db, emp.id, today=TODAY)
        assert await BalanceLedger.ensure_seeded(db, emp.id, today=date(2026, 4, 1)) == 1
        assert await _balance_count(db) == 2

    async def test_my_balances_seeds_then_lists(self, db: AsyncSession, annual_leave):
        emp = await seed_employee(db)

        balances = await LeaveService.my_balances(db, emp.id, today=TODAY)

        assert len(balances) == 1
        assert balances[0].leave_type.name == "Annual Leave"
        assert balances[0].year == 2026


# ═════════════════════════════════════════════════════════════════════
# 2. Manual set
# ═════════════════════════════════════════════════════════════════════


class TestManualSet:

    async def test_creates_override_row(self, db: AsyncSession, annual_leave):
        emp = await seed_employee(db)

        balance = await BalanceLedger.manual_set(
            db, emp.id, annual_leave.id, 2026, None, Decimal("12.5"),
        )

        assert balance.total == balance.remaining == Decimal("12.5")
        assert balance.is_manual_override is True

    async def test_updates_existing_and_resets_remaining(self, db: AsyncSession, annual_leave):
        emp = await seed_employee(db)
        existing = await seed_balance(
            db, emp.id, annual_leave.id, total=Decimal("10"), remaining=Decimal("4"),
        )

        balance = await BalanceLedger.manual_set(
            db, emp.id, annual_leave.id, 2026, None, Decimal("15"),
        )

        assert balance.id == existing.id
        assert balance.remaining == Decimal("15")
        assert await _balance_count(db) == 1

    async def test_annual_type_ignores_month(self, db: AsyncSession, annual_leave):
        emp = await seed_employee(db)

        balance = await BalanceLedger.manual_set(
            db, emp.id, annual_leave.id, 2026, 7, Decimal("5"),
        )

        assert balance.month is None

    async def test_monthly_type_requires_month(self, db: AsyncSession):
        emp = await seed_employee(db)
        wfh = await seed_leave_type(db, name="WFH", cadence=LeaveCadence.MONTHLY)

        with pytest.raises(ValidationException) as exc:
            await BalanceLedger.manual_set(db, emp.id, wfh.id, 2026, None, Decimal("4"))
        assert "month" in exc.value.errors

    async def test_unknown_employee(self, db: AsyncSession, annual_leave):
        with pytest.raises(NotFoundException):
            await BalanceLedger.manual_set(
                db, uuid.uuid4(), annual_leave.id, 2026, None, Decimal("5"),
            )


# ═════════════════════════════════════════════════════════════════════
# 3. Bulk rebase
# ═════════════════════════════════════════════════════════════════════


class TestBulkRebase:

    @pytest.fixture
    async def rows(self, db: AsyncSession, annual_leave):
        """One plain, one manual-override and one locked row, plus an employee without a row."""
        plain_emp = await seed_employee(db)
        manual_emp = await seed_employee(db)
        locked_emp = await seed_employee(db)
        fresh_emp = await seed_employee(db)
        plain = await seed_balance(
            db, plain_emp.id, annual_leave.id, total=Decimal("10"), remaining=Decimal("6"),
        )
        manual = await seed_balance(
            db, manual_emp.id, annual_leave.id, total=Decimal("30"), is_manual_override=True,
        )
        locked = await seed_balance(
            db, locked_emp.id, annual_leave.id, total=Decimal("10"), is_locked=True,
        )
        return plain, manual, locked, fresh_emp

    async def test_keeps_consumption_and_protects_overrides(
        self, db: AsyncSession, annual_leave, rows,
    ):
        plain, manual, locked, fresh_emp = rows

        count = await BalanceLedger.bulk_rebase(
            db, annual_leave.id, 2026, Decimal("15"), protect_manual_changes=True,
        )

        assert count == 2
        assert (plain.total, plain.remaining) == (Decimal("15"), Decimal("11"))
        assert manual.total == Decimal("30")
        assert locked.total == Decimal("10")
        fresh = await BalanceLedger.find(db, fresh_emp.id, annual_leave.id, 2026)
        assert fresh.total == fresh.remaining == Decimal("15")

    async def test_unprotected_overwrites_overrides_but_not_locks(
        self, db: AsyncSession, annual_leave, rows,
    ):
        plain, manual, locked, _ = rows

        count = await BalanceLedger.bulk_rebase(
            db, annual_leave.id, 2026, Decimal("20"), protect_manual_changes=False,
        )

        assert count == 3
        assert (manual.total, manual.remaining) == (Decimal("20"), Decimal("20"))
        assert manual.is_manual_override is False
        assert plain.remaining == Decimal("16")
        await db.refresh(locked)
        assert locked.total == Decimal("10")

    async def test_lowering_total_may_go_negative(self, db: AsyncSession, annual_leave):
        emp = await seed_employee(db)
        balance = await seed_balance(
            db, emp.id, annual_leave.id, total=Decimal("10"), remaining=Decimal("2"),
        )

        await BalanceLedger.bulk_rebase(db, annual_leave.id, 2026, Decimal("5"), True)

        assert balance.remaining == Decimal("-3")

    async def test_other_years_untouched(self, db: AsyncSession, annual_leave):
        emp = await seed_employee(db)
        last_year = await seed_balance(db, emp.id, annual_leave.id, year=2025)

        await BalanceLedger.bulk_rebase(db, annual_leave.id, 2026, Decimal("25"), True)

        assert last_year.total == Decimal("10")
        assert await _balance_count(db) == 2

    async def test_monthly_type_rebases_given_month(self, db: AsyncSession):
        emp = await seed_employee(db)
        wfh = await seed_leave_type(db, name="WFH", cadence=LeaveCadence.MONTHLY)
        march = await seed_balance(db, emp.id, wfh.id, month=3, total=Decimal("4"))
        april = await seed_balance(db, emp.id, wfh.id, month=4, total=Decimal("4"))

        result = await LeaveService.bulk_rebase_balances(
            db, wfh.id, 2026, Decimal("6"), True, month=3,
        )

        assert result.count == 1
        assert march.total == Decimal("6")
        assert april.total == Decimal("4")


# ═════════════════════════════════════════════════════════════════════
# 4. Debit / credit / lock
# ═════════════════════════════════════════════════════════════════════


class TestDebitCredit:

    async def test_debit_subtracts(self, db: AsyncSession, annual_leave):
        emp = await seed_employee(db)
        balance = await seed_balance(db, emp.id, annual_leave.id)

        out = await BalanceLedger.debit(db, balance.id, 4)

        assert out.remaining == Decimal("6")

    async def test_debit_to_exactly_zero(self, db: AsyncSession, annual_leave):
        emp = await seed_employee(db)
        balance = await seed_balance(db, emp.id, annual_leave.id, remaining=Decimal("3"))

        out = await BalanceLedger.debit(db, balance.id, 3)

        assert out.remaining == Decimal("0")

    async def test_debit_refused_when_short(self, db: AsyncSession, annual_leave):
        emp = await seed_employee(db)
        balance = await seed_balance(db, emp.id, annual_leave.id, remaining=Decimal("2"))

        with pytest.raises(InsufficientBalanceException):
            await BalanceLedger.debit(db, balance.id, 3)

        await db.refresh(balance)
        assert balance.remaining == Decimal("2")

    async def test_second_debit_loses_the_race(self, db: AsyncSession, annual_leave):
        emp = await seed_employee(db)
        balance = await seed_balance(db, emp.id, annual_leave.id, remaining=Decimal("5"))

        await BalanceLedger.debit(db, balance.id, 5)
        with pytest.raises(InsufficientBalanceException):
            await BalanceLedger.debit(db, balance.id, 5)

    async def test_credit_is_not_clamped(self, db: AsyncSession, annual_leave):
        emp = await seed_employee(db)
        balance = await seed_balance(db, emp.id, annual_leave.id)

        out = await BalanceLedger.credit(db, balance.id, 2)

        assert out.remaining == Decimal("12")

    async def test_credit_unknown_balance(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await BalanceLedger.credit(db, uuid.uuid4(), 1)

    async def test_set_lock(self, db: AsyncSession, annual_leave):
        emp = await seed_employee(db)
        balance = await seed_balance(db, emp.id, annual_leave.id)

        out = await LeaveService.set_balance_lock(db, balance.id, True)
        assert out.is_locked is True

        out = await LeaveService.set_balance_lock(db, balance.id, False)
        assert out.is_locked is False

    async def test_set_lock_unknown(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await LeaveService.set_balance_lock(db, uuid.uuid4(), True)


# ═════════════════════════════════════════════════════════════════════
# 5. Admin listing and leave types
# ═════════════════════════════════════════════════════════════════════


class TestAdminViews:

    async def test_list_balances_filters(self, db: AsyncSession, annual_leave):
        sick = await seed_leave_type(db, name="Sick Leave")
        emp = await seed_employee(db)
        await seed_balance(db, emp.id, annual_leave.id, year=2025)
        await seed_balance(db, emp.id, annual_leave.id, year=2026)
        await seed_balance(db, emp.id, sick.id, year=2026)

        assert len(await LeaveService.list_balances(db)) == 3
        assert len(await LeaveService.list_balances(db, year=2026)) == 2
        rows = await LeaveService.list_balances(db, year=2026, leave_type_id=sick.id)
        assert [r.leave_type.name for r in rows] == ["Sick Leave"]
        assert rows[0].employee.id == emp.id

    async def test_create_leave_type_and_duplicate(self, db: AsyncSession):
        data = LeaveTypeCreate(name="Parental", default_allowance=Decimal("30"))

        out = await LeaveService.create_leave_type(db, data)
        assert out.cadence == LeaveCadence.ANNUAL

        with pytest.raises(ConflictError):
            await LeaveService.create_leave_type(db, data)

        names = [lt.name for lt in await LeaveService.list_leave_types(db)]
        assert names == ["Parental"]
