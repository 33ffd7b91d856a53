"""Scheduling router — work schedules and holidays.

Reads are open to any authenticated user; writes require admin.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.auth.dependencies import get_current_user, require_role
from leaveflow.common.constants import UserRole
from leaveflow.core_hr.models import Employee
from leaveflow.database import get_db
from leaveflow.scheduling.schemas import (
    HolidayCreate,
    HolidayOut,
    HolidayUpdate,
    WorkScheduleCreate,
    WorkScheduleOut,
    WorkScheduleUpdate,
)
from leaveflow.scheduling.service import HolidayService, ScheduleService

schedules_router = APIRouter(prefix="", tags=["schedules"])
holidays_router = APIRouter(prefix="", tags=["holidays"])


# ═════════════════════════════════════════════════════════════════════
# Work Schedules
# ═════════════════════════════════════════════════════════════════════


@schedules_router.get("", response_model=list[WorkScheduleOut])
async def list_schedules(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List schedules, default first."""
    return await ScheduleService.list_schedules(db)


@schedules_router.post("", response_model=WorkScheduleOut, status_code=201)
async def create_schedule(
    body: WorkScheduleCreate,
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Create a schedule. Setting ``is_default`` replaces the current default."""
    return await ScheduleService.create_schedule(db, body)


@schedules_router.patch("/{schedule_id}", response_model=WorkScheduleOut)
async def update_schedule(
    schedule_id: uuid.UUID,
    body: WorkScheduleUpdate,
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await ScheduleService.update_schedule(db, schedule_id, body)


@schedules_router.delete("/{schedule_id}", status_code=204)
async def delete_schedule(
    schedule_id: uuid.UUID,
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    await ScheduleService.delete_schedule(db, schedule_id)
    return Response(status_code=204)


# ═════════════════════════════════════════════════════════════════════
# Holidays
# ═════════════════════════════════════════════════════════════════════


@holidays_router.get("", response_model=list[HolidayOut])
async def list_holidays(
    year: Optional[int] = Query(None),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List holidays ordered by start date, optionally for one year."""
    return await HolidayService.list_holidays(db, year=year)


@holidays_router.post("", response_model=HolidayOut, status_code=201)
async def create_holiday(
    body: HolidayCreate,
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.create_holiday(db, body, created_by_id=admin.id)


@holidays_router.patch("/{holiday_id}", response_model=HolidayOut)
async def update_holiday(
    holiday_id: uuid.UUID,
    body: HolidayUpdate,
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.update_holiday(db, holiday_id, body)


@holidays_router.delete("/{holiday_id}", status_code=204)
async def delete_holiday(
    holiday_id: uuid.UUID,
    admin: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    await HolidayService.delete_holiday(db, holiday_id)
    return Response(status_code=204)
