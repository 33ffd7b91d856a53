"""Shared test fixtures — async DB, client, auth helpers, factories.

Reusable across all test modules (core_hr, scheduling, leave, API).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leaveflow.common.constants import (
    HolidayType,
    LeaveCadence,
    LeaveStatus,
    LeaveUnit,
    UserRole,
)
from leaveflow.config import settings
from leaveflow.database import Base, get_db
from leaveflow.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
# (e.g. Employee → LeaveBalance, LeaveRequest → LeaveRequestAudit)
import leaveflow.common.audit  # noqa: F401
import leaveflow.core_hr.models  # noqa: F401
import leaveflow.leave.models  # noqa: F401
import leaveflow.scheduling.models  # noqa: F401

from leaveflow.core_hr.models import Employee
from leaveflow.leave.models import LeaveBalance, LeaveRequest, LeaveType
from leaveflow.scheduling.models import Holiday, WorkSchedule

# ── SQLite compat: compile PG-specific types ────────────────────────

from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from leaveflow.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

async def seed_schedule(
    db: AsyncSession,
    *,
    name: str = "Standard",
    is_default: bool = True,
    working: tuple[str, ...] = ("monday", "tuesday", "wednesday", "thursday", "friday"),
) -> WorkSchedule:
    """Insert a schedule working on the named weekdays (Mon–Fri by default)."""
    days = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
    schedule = WorkSchedule(
        id=uuid.uuid4(),
        name=name,
        start_time=time(9, 0),
        end_time=time(17, 0),
        is_default=is_default,
        **{day: day in working for day in days},
    )
    db.add(schedule)
    await db.flush()
    return schedule


async def seed_employee(
    db: AsyncSession,
    *,
    email: Optional[str] = None,
    first_name: str = "Test",
    last_name: str = "Employee",
    manager_id: Optional[uuid.UUID] = None,
    work_schedule_id: Optional[uuid.UUID] = None,
    is_active: bool = True,
) -> Employee:
    employee = Employee(
        id=uuid.uuid4(),
        first_name=first_name,
        last_name=last_name,
        email=email or f"emp-{uuid.uuid4().hex[:8]}@leaveflow.local",
        position="Engineer",
        start_date=date(2024, 1, 15),
        manager_id=manager_id,
        work_schedule_id=work_schedule_id,
        is_active=is_active,
    )
    db.add(employee)
    await db.flush()
    return employee


async def seed_leave_type(
    db: AsyncSession,
    *,
    name: str = "Annual Leave",
    default_allowance: Decimal = Decimal("20"),
    cadence: LeaveCadence = LeaveCadence.ANNUAL,
    unit: LeaveUnit = LeaveUnit.DAYS,
) -> LeaveType:
    leave_type = LeaveType(
        id=uuid.uuid4(),
        name=name,
        default_allowance=default_allowance,
        unit=unit,
        cadence=cadence,
    )
    db.add(leave_type)
    await db.flush()
    return leave_type


async def seed_balance(
    db: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    *,
    year: int = 2026,
    month: Optional[int] = None,
    total: Decimal = Decimal("10"),
    remaining: Optional[Decimal] = None,
    is_manual_override: bool = False,
    is_locked: bool = False,
) -> LeaveBalance:
    balance = LeaveBalance(
        id=uuid.uuid4(),
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        year=year,
        month=month,
        total=total,
        remaining=total if remaining is None else remaining,
        is_manual_override=is_manual_override,
        is_locked=is_locked,
    )
    db.add(balance)
    await db.flush()
    return balance


async def seed_holiday(
    db: AsyncSession,
    start_date: date,
    end_date: date,
    *,
    type: HolidayType = HolidayType.COMPANY,
    employee_id: Optional[uuid.UUID] = None,
    repeat_weekly: bool = False,
    name: str = "Company Shutdown",
) -> Holiday:
    holiday = Holiday(
        id=uuid.uuid4(),
        name=name,
        start_date=start_date,
        end_date=end_date,
        type=type,
        employee_id=employee_id,
        repeat_weekly=repeat_weekly,
    )
    db.add(holiday)
    await db.flush()
    return holiday


async def seed_request(
    db: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    start_date: date,
    end_date: date,
    *,
    status: LeaveStatus = LeaveStatus.PENDING_MANAGER,
    requested_days: int = 1,
    status_before_cancellation: Optional[LeaveStatus] = None,
) -> LeaveRequest:
    """Insert a request directly in ``status``, bypassing the lifecycle."""
    leave_request = LeaveRequest(
        id=uuid.uuid4(),
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        start_date=start_date,
        end_date=end_date,
        requested_days=requested_days,
        status=status,
        status_before_cancellation=status_before_cancellation,
    )
    db.add(leave_request)
    await db.flush()
    return leave_request


@pytest.fixture
async def default_schedule(db) -> WorkSchedule:
    """Mon–Fri default schedule; most leave tests need one to count days."""
    return await seed_schedule(db)


@pytest.fixture
async def annual_leave(db) -> LeaveType:
    return await seed_leave_type(db)


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
) -> dict[str, str]:
    """Bearer headers for ``employee_id`` acting with ``role``."""
    return {"Authorization": f"Bearer {create_access_token(employee_id, role)}"}
