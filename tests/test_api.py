"""HTTP layer — auth, routing, role gates and RFC 7807 error bodies.

Seed through the ``db`` fixture, commit, then call the app; the app uses
its own session, so re-read with populate_existing after a call.
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import HolidayType, LeaveStatus, UserRole
from leaveflow.leave.models import LeaveBalance
from tests.conftest import (
    auth_headers,
    create_access_token,
    seed_balance,
    seed_employee,
    seed_request,
)

API = "/api/v1"
PROBLEM_JSON = "application/problem+json"


async def _reload_balance(db: AsyncSession, balance_id: uuid.UUID) -> LeaveBalance:
    result = await db.execute(
        select(LeaveBalance)
        .where(LeaveBalance.id == balance_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().one()


# ═════════════════════════════════════════════════════════════════════
# 1. System and auth
# ═════════════════════════════════════════════════════════════════════


class TestAuth:

    async def test_health_needs_no_token(self, client: AsyncClient):
        resp = await client.get(f"{API}/health")

        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    async def test_missing_token(self, client: AsyncClient):
        resp = await client.get(f"{API}/leave/requests/mine")
        assert resp.status_code == 401

    async def test_garbage_token(self, client: AsyncClient):
        resp = await client.get(
            f"{API}/leave/requests/mine", headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert resp.status_code == 401

    async def test_expired_token(self, client: AsyncClient, db: AsyncSession):
        emp = await seed_employee(db)
        await db.commit()
        token = create_access_token(emp.id, expired=True)

        resp = await client.get(
            f"{API}/leave/requests/mine", headers={"Authorization": f"Bearer {token}"},
        )

        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token has expired."

    async def test_inactive_employee_rejected(self, client: AsyncClient, db: AsyncSession):
        emp = await seed_employee(db, is_active=False)
        await db.commit()

        resp = await client.get(f"{API}/leave/requests/mine", headers=auth_headers(emp.id))

        assert resp.status_code == 401

    async def test_employee_blocked_from_admin_routes(self, client: AsyncClient, db: AsyncSession):
        emp = await seed_employee(db)
        await db.commit()

        resp = await client.get(f"{API}/leave/admin/pending-approvals", headers=auth_headers(emp.id))

        assert resp.status_code == 403
        assert resp.headers["content-type"].startswith(PROBLEM_JSON)
        assert resp.json()["type"].endswith("/forbidden")

    async def test_super_admin_inherits_admin(self, client: AsyncClient, db: AsyncSession):
        boss = await seed_employee(db)
        await db.commit()

        resp = await client.get(
            f"{API}/leave/admin/pending-approvals",
            headers=auth_headers(boss.id, UserRole.super_admin),
        )

        assert resp.status_code == 200
        assert resp.json() == []


# ═════════════════════════════════════════════════════════════════════
# 2. Leave requests over HTTP
# ═════════════════════════════════════════════════════════════════════


class TestLeaveRoutes:

    async def test_submit_and_approve(
        self, client: AsyncClient, db: AsyncSession, default_schedule, annual_leave,
    ):
        emp = await seed_employee(db)
        admin = await seed_employee(db)
        balance = await seed_balance(db, emp.id, annual_leave.id, total=Decimal("10"))
        await db.commit()

        resp = await client.post(
            f"{API}/leave/requests",
            json={
                "leave_type_id": str(annual_leave.id),
                "start_date": "2026-03-02",
                "end_date": "2026-03-06",
            },
            headers=auth_headers(emp.id),
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == LeaveStatus.PENDING_ADMIN.value
        assert body["requested_days"] == 5
        request_id = body["id"]

        resp = await client.patch(
            f"{API}/leave/requests/{request_id}/status",
            json={"status": "APPROVED_BY_ADMIN"},
            headers=auth_headers(admin.id, UserRole.admin),
        )
        assert resp.status_code == 200
        assert resp.json()["approved_by_id"] == str(admin.id)

        assert (await _reload_balance(db, balance.id)).remaining == Decimal("5")

        resp = await client.get(f"{API}/leave/requests/{request_id}", headers=auth_headers(emp.id))
        assert resp.status_code == 200
        assert [a["new_status"] for a in resp.json()["audit_trail"]] == [
            "PENDING_ADMIN", "APPROVED_BY_ADMIN",
        ]

    async def test_schema_rejects_inverted_range(
        self, client: AsyncClient, db: AsyncSession, annual_leave,
    ):
        emp = await seed_employee(db)
        await db.commit()

        resp = await client.post(
            f"{API}/leave/requests",
            json={
                "leave_type_id": str(annual_leave.id),
                "start_date": "2026-03-06",
                "end_date": "2026-03-02",
            },
            headers=auth_headers(emp.id),
        )

        assert resp.status_code == 422
        assert resp.headers["content-type"].startswith(PROBLEM_JSON)
        assert "errors" in resp.json()

    async def test_insufficient_balance_problem_body(
        self, client: AsyncClient, db: AsyncSession, default_schedule, annual_leave,
    ):
        emp = await seed_employee(db)
        await seed_balance(db, emp.id, annual_leave.id, remaining=Decimal("1"))
        await db.commit()

        resp = await client.post(
            f"{API}/leave/requests",
            json={
                "leave_type_id": str(annual_leave.id),
                "start_date": "2026-03-02",
                "end_date": "2026-03-04",
            },
            headers=auth_headers(emp.id),
        )

        assert resp.status_code == 422
        problem = resp.json()
        assert problem["type"].endswith("/insufficient-balance")
        assert problem["instance"] == f"{API}/leave/requests"

    async def test_deny_without_reason(
        self, client: AsyncClient, db: AsyncSession, default_schedule, annual_leave,
    ):
        emp = await seed_employee(db)
        admin = await seed_employee(db)
        req = await seed_request(
            db, emp.id, annual_leave.id, date(2026, 3, 2), date(2026, 3, 2),
            status=LeaveStatus.PENDING_ADMIN,
        )
        await db.commit()

        resp = await client.patch(
            f"{API}/leave/requests/{req.id}/status",
            json={"status": "DENIED"},
            headers=auth_headers(admin.id, UserRole.admin),
        )

        assert resp.status_code == 422
        assert "reason" in resp.json()["errors"]

    async def test_invalid_transition_is_409(
        self, client: AsyncClient, db: AsyncSession, default_schedule, annual_leave,
    ):
        emp = await seed_employee(db)
        req = await seed_request(
            db, emp.id, annual_leave.id, date(2026, 3, 2), date(2026, 3, 2),
            status=LeaveStatus.APPROVED_BY_ADMIN,
        )
        await db.commit()

        resp = await client.patch(f"{API}/leave/requests/{req.id}/cancel", headers=auth_headers(emp.id))

        assert resp.status_code == 409
        assert resp.json()["type"].endswith("/invalid-transition")

    async def test_withdraw_by_stranger_forbidden(
        self, client: AsyncClient, db: AsyncSession, default_schedule, annual_leave,
    ):
        emp = await seed_employee(db)
        stranger = await seed_employee(db)
        req = await seed_request(db, emp.id, annual_leave.id, date(2026, 3, 2), date(2026, 3, 2))
        await db.commit()

        resp = await client.patch(
            f"{API}/leave/requests/{req.id}/cancel", headers=auth_headers(stranger.id),
        )

        assert resp.status_code == 403

    async def test_unknown_request_404(self, client: AsyncClient, db: AsyncSession):
        emp = await seed_employee(db)
        await db.commit()

        resp = await client.get(f"{API}/leave/requests/{uuid.uuid4()}", headers=auth_headers(emp.id))

        assert resp.status_code == 404
        assert resp.json()["status"] == 404

    async def test_cancellation_flow(
        self, client: AsyncClient, db: AsyncSession, default_schedule, annual_leave,
    ):
        emp = await seed_employee(db)
        admin = await seed_employee(db)
        balance = await seed_balance(db, emp.id, annual_leave.id, remaining=Decimal("9"))
        req = await seed_request(
            db, emp.id, annual_leave.id, date(2026, 3, 2), date(2026, 3, 2),
            status=LeaveStatus.APPROVED_BY_ADMIN,
        )
        await db.commit()

        resp = await client.patch(
            f"{API}/leave/requests/{req.id}/request-cancellation", headers=auth_headers(emp.id),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "CANCELLATION_PENDING_ADMIN"

        resp = await client.get(
            f"{API}/leave/admin/pending-cancellations",
            headers=auth_headers(admin.id, UserRole.admin),
        )
        assert [r["id"] for r in resp.json()] == [str(req.id)]

        resp = await client.patch(
            f"{API}/leave/requests/{req.id}/cancellation-approval",
            json={"approve": True},
            headers=auth_headers(admin.id, UserRole.admin),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "CANCELLED"
        assert (await _reload_balance(db, balance.id)).remaining == Decimal("10")

    async def test_manager_queue(
        self, client: AsyncClient, db: AsyncSession, default_schedule, annual_leave,
    ):
        boss = await seed_employee(db)
        ada = await seed_employee(db, manager_id=boss.id)
        bob = await seed_employee(db, manager_id=boss.id)
        pending = await seed_request(db, ada.id, annual_leave.id, date(2026, 3, 2), date(2026, 3, 3))
        await seed_request(
            db, bob.id, annual_leave.id, date(2026, 3, 3), date(2026, 3, 3),
            status=LeaveStatus.APPROVED_BY_ADMIN,
        )
        await db.commit()

        resp = await client.get(f"{API}/leave/manager/pending-approvals", headers=auth_headers(boss.id))

        assert resp.status_code == 200
        [item] = resp.json()
        assert item["id"] == str(pending.id)
        assert item["has_overlap"] is True
        assert item["employee"]["id"] == str(ada.id)

        resp = await client.get(f"{API}/leave/manager/pending-approvals", headers=auth_headers(ada.id))
        assert resp.json() == []


# ═════════════════════════════════════════════════════════════════════
# 3. Balances and leave types
# ═════════════════════════════════════════════════════════════════════


class TestBalanceRoutes:

    async def test_my_balances_seeds_on_first_read(
        self, client: AsyncClient, db: AsyncSession, annual_leave,
    ):
        emp = await seed_employee(db)
        await db.commit()

        resp = await client.get(f"{API}/leave/balances/mine", headers=auth_headers(emp.id))

        assert resp.status_code == 200
        [row] = resp.json()
        assert Decimal(row["total"]) == Decimal("20")
        assert row["leave_type"]["name"] == "Annual Leave"

        resp = await client.get(f"{API}/leave/balances/mine", headers=auth_headers(emp.id))
        assert len(resp.json()) == 1

    async def test_manual_set_and_lock(
        self, client: AsyncClient, db: AsyncSession, annual_leave,
    ):
        emp = await seed_employee(db)
        admin = await seed_employee(db)
        await db.commit()
        headers = auth_headers(admin.id, UserRole.admin)

        resp = await client.post(
            f"{API}/leave/balances",
            json={
                "employee_id": str(emp.id),
                "leave_type_id": str(annual_leave.id),
                "year": 2026,
                "total": "14",
            },
            headers=headers,
        )
        assert resp.status_code == 200
        row = resp.json()
        assert row["is_manual_override"] is True

        resp = await client.patch(
            f"{API}/leave/balances/{row['id']}/lock", json={"is_locked": True}, headers=headers,
        )
        assert resp.json()["is_locked"] is True

        resp = await client.post(
            f"{API}/leave/balances/bulk-update",
            json={
                "leave_type_id": str(annual_leave.id),
                "year": 2026,
                "new_total": "25",
                "protect_manual_changes": False,
            },
            headers=headers,
        )
        # Locked row skipped; the admin gets a fresh row
        assert resp.json() == {"count": 1}

        resp = await client.get(f"{API}/leave/balances?year=2026", headers=headers)
        totals = sorted(Decimal(r["total"]) for r in resp.json())
        assert totals == [Decimal("14"), Decimal("25")]

    async def test_balance_admin_routes_forbidden_for_employee(
        self, client: AsyncClient, db: AsyncSession,
    ):
        emp = await seed_employee(db)
        await db.commit()

        resp = await client.get(f"{API}/leave/balances", headers=auth_headers(emp.id))

        assert resp.status_code == 403

    async def test_leave_type_conflict(self, client: AsyncClient, db: AsyncSession):
        admin = await seed_employee(db)
        await db.commit()
        headers = auth_headers(admin.id, UserRole.admin)
        payload = {"name": "Sick Leave", "default_allowance": "10", "cadence": "ANNUAL"}

        resp = await client.post(f"{API}/leave/types", json=payload, headers=headers)
        assert resp.status_code == 201

        resp = await client.post(f"{API}/leave/types", json=payload, headers=headers)
        assert resp.status_code == 409
        assert resp.json()["errors"] == {"name": ["'Sick Leave' is already in use."]}

        resp = await client.get(f"{API}/leave/types", headers=auth_headers(admin.id))
        assert [t["name"] for t in resp.json()] == ["Sick Leave"]


# ═════════════════════════════════════════════════════════════════════
# 4. Employees, schedules, holidays
# ═════════════════════════════════════════════════════════════════════


class TestEmployeeRoutes:

    async def test_assign_manager_and_is_manager(self, client: AsyncClient, db: AsyncSession):
        boss = await seed_employee(db)
        emp = await seed_employee(db)
        admin = await seed_employee(db)
        await db.commit()

        resp = await client.patch(
            f"{API}/employees/{emp.id}/manager",
            json={"manager_id": str(boss.id)},
            headers=auth_headers(admin.id, UserRole.admin),
        )
        assert resp.status_code == 200
        assert resp.json()["manager_id"] == str(boss.id)

        resp = await client.get(f"{API}/employees/me/is-manager", headers=auth_headers(boss.id))
        assert resp.json() == {"is_manager": True}

        resp = await client.get(f"{API}/employees/{boss.id}/direct-reports", headers=auth_headers(boss.id))
        assert [r["id"] for r in resp.json()] == [str(emp.id)]

    async def test_cycle_rejected(self, client: AsyncClient, db: AsyncSession):
        top = await seed_employee(db)
        low = await seed_employee(db, manager_id=top.id)
        await db.commit()

        resp = await client.patch(
            f"{API}/employees/{top.id}/manager",
            json={"manager_id": str(low.id)},
            headers=auth_headers(top.id, UserRole.admin),
        )

        assert resp.status_code == 422
        assert "manager_id" in resp.json()["errors"]

    async def test_employee_cannot_assign(self, client: AsyncClient, db: AsyncSession):
        emp = await seed_employee(db)
        await db.commit()

        resp = await client.patch(
            f"{API}/employees/{emp.id}/manager",
            json={"manager_id": None},
            headers=auth_headers(emp.id),
        )

        assert resp.status_code == 403

    async def test_other_direct_reports_hidden(self, client: AsyncClient, db: AsyncSession):
        emp = await seed_employee(db)
        other = await seed_employee(db)
        await db.commit()

        resp = await client.get(f"{API}/employees/{other.id}/direct-reports", headers=auth_headers(emp.id))

        assert resp.status_code == 403

    async def test_deactivated_employee_loses_access(self, client: AsyncClient, db: AsyncSession):
        emp = await seed_employee(db)
        admin = await seed_employee(db)
        await db.commit()

        resp = await client.delete(
            f"{API}/employees/{emp.id}", headers=auth_headers(admin.id, UserRole.admin),
        )
        assert resp.json()["is_active"] is False

        resp = await client.get(f"{API}/leave/requests/mine", headers=auth_headers(emp.id))
        assert resp.status_code == 401


class TestSchedulingRoutes:

    async def test_schedule_crud(self, client: AsyncClient, db: AsyncSession, default_schedule):
        admin = await seed_employee(db)
        await db.commit()
        headers = auth_headers(admin.id, UserRole.admin)

        resp = await client.post(
            f"{API}/schedules",
            json={"name": "Night shift", "start_time": "22:00:00", "end_time": "06:00:00"},
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.json()["is_default"] is False

        resp = await client.get(f"{API}/schedules", headers=auth_headers(admin.id))
        assert [s["name"] for s in resp.json()] == ["Standard", "Night shift"]

        resp = await client.delete(f"{API}/schedules/{default_schedule.id}", headers=headers)
        assert resp.status_code == 422

    async def test_holiday_routes(self, client: AsyncClient, db: AsyncSession):
        admin = await seed_employee(db)
        await db.commit()
        headers = auth_headers(admin.id, UserRole.admin)

        resp = await client.post(
            f"{API}/holidays",
            json={
                "name": "Personal day",
                "start_date": "2026-03-02",
                "end_date": "2026-03-02",
                "type": HolidayType.EMPLOYEE.value,
            },
            headers=headers,
        )
        assert resp.status_code == 422

        resp = await client.post(
            f"{API}/holidays",
            json={
                "name": "Founders day",
                "start_date": "2026-03-02",
                "end_date": "2026-03-02",
                "type": HolidayType.COMPANY.value,
            },
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.json()["created_by_id"] == str(admin.id)

        resp = await client.get(f"{API}/holidays?year=2026", headers=auth_headers(admin.id))
        assert [h["name"] for h in resp.json()] == ["Founders day"]

        resp = await client.post(
            f"{API}/holidays",
            json={
                "name": "Nope",
                "start_date": "2026-03-02",
                "end_date": "2026-03-02",
                "type": HolidayType.COMPANY.value,
            },
            headers=auth_headers(admin.id),
        )
        assert resp.status_code == 403
