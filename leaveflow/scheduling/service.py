"""Scheduling service layer — work schedules, holidays, working-day counting.

Business logic:
  - Single default schedule: the previous default is unset in the same
    transaction before a new one is set
  - Schedule resolution: the employee's own schedule, else the default
  - Holiday validation: inclusive range, EMPLOYEE holidays need an employee
  - Per-employee working-day count over a date range
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import and_, extract, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import ORG_WIDE_HOLIDAY_TYPES, HolidayType
from leaveflow.common.exceptions import (
    ConfigurationException,
    NotFoundException,
    ValidationException,
)
from leaveflow.core_hr.models import Employee
from leaveflow.scheduling.models import Holiday, WorkSchedule
from leaveflow.scheduling.schemas import (
    HolidayCreate,
    HolidayOut,
    HolidayUpdate,
    WorkScheduleCreate,
    WorkScheduleOut,
    WorkScheduleUpdate,
)
from leaveflow.scheduling.working_days import HolidayInterval, count_working_days

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# ScheduleService
# ═════════════════════════════════════════════════════════════════════


class ScheduleService:
    """Work schedule CRUD and resolution."""

    @staticmethod
    async def _get_or_404(db: AsyncSession, schedule_id: uuid.UUID) -> WorkSchedule:
        schedule = await db.get(WorkSchedule, schedule_id)
        if schedule is None:
            raise NotFoundException("WorkSchedule", str(schedule_id))
        return schedule

    @staticmethod
    async def _unset_default(
        db: AsyncSession,
        *,
        keep_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Clear ``is_default`` on every schedule except ``keep_id``.

        Must run before the new default is written so the partial unique
        index never sees two defaults.
        """
        stmt = update(WorkSchedule).where(WorkSchedule.is_default.is_(True))
        if keep_id is not None:
            stmt = stmt.where(WorkSchedule.id != keep_id)
        await db.execute(stmt.values(is_default=False))

    @staticmethod
    async def get_default(db: AsyncSession) -> Optional[WorkSchedule]:
        result = await db.execute(
            select(WorkSchedule).where(WorkSchedule.is_default.is_(True))
        )
        return result.scalars().first()

    @staticmethod
    async def resolve_for_employee(
        db: AsyncSession,
        employee: Employee,
    ) -> WorkSchedule:
        """Return the employee's schedule, falling back to the default.

        Raises ConfigurationException when neither exists.
        """
        if employee.work_schedule_id is not None:
            schedule = await db.get(WorkSchedule, employee.work_schedule_id)
            if schedule is not None:
                return schedule

        schedule = await ScheduleService.get_default(db)
        if schedule is None:
            raise ConfigurationException(
                "No default work schedule found. Please configure one."
            )
        return schedule

    @staticmethod
    async def list_schedules(db: AsyncSession) -> list[WorkScheduleOut]:
        """Default schedule first, then by name."""
        result = await db.execute(
            select(WorkSchedule).order_by(
                WorkSchedule.is_default.desc(), WorkSchedule.name,
            )
        )
        return [WorkScheduleOut.model_validate(s) for s in result.scalars().all()]

    @staticmethod
    async def create_schedule(
        db: AsyncSession,
        data: WorkScheduleCreate,
    ) -> WorkScheduleOut:
        if data.is_default:
            await ScheduleService._unset_default(db)

        schedule = WorkSchedule(**data.model_dump())
        db.add(schedule)
        await db.flush()

        if schedule.is_default:
            logger.info("Work schedule %s (%s) is now the default", schedule.id, schedule.name)
        return WorkScheduleOut.model_validate(schedule)

    @staticmethod
    async def update_schedule(
        db: AsyncSession,
        schedule_id: uuid.UUID,
        data: WorkScheduleUpdate,
    ) -> WorkScheduleOut:
        schedule = await ScheduleService._get_or_404(db, schedule_id)
        changes = data.model_dump(exclude_unset=True)

        becomes_default = changes.get("is_default") is True and not schedule.is_default
        if becomes_default:
            await ScheduleService._unset_default(db, keep_id=schedule.id)

        for field, value in changes.items():
            if value is None:
                continue
            setattr(schedule, field, value)
        await db.flush()

        if becomes_default:
            logger.info("Work schedule %s (%s) is now the default", schedule.id, schedule.name)
        return WorkScheduleOut.model_validate(schedule)

    @staticmethod
    async def delete_schedule(db: AsyncSession, schedule_id: uuid.UUID) -> None:
        """Delete a schedule that is neither the default nor assigned."""
        schedule = await ScheduleService._get_or_404(db, schedule_id)

        if schedule.is_default:
            raise ValidationException({
                "schedule": [
                    "Cannot delete the default work schedule. "
                    "Please set another schedule as default first."
                ]
            })

        assigned = await db.execute(
            select(func.count()).select_from(Employee).where(
                Employee.work_schedule_id == schedule_id
            )
        )
        if assigned.scalar_one() > 0:
            raise ValidationException({
                "schedule": [
                    "Cannot delete schedule as it is currently assigned "
                    "to one or more employees."
                ]
            })

        await db.delete(schedule)
        await db.flush()


# ═════════════════════════════════════════════════════════════════════
# HolidayService
# ═════════════════════════════════════════════════════════════════════


class HolidayService:
    """Holiday CRUD and per-employee calendar loading."""

    @staticmethod
    async def _get_or_404(db: AsyncSession, holiday_id: uuid.UUID) -> Holiday:
        holiday = await db.get(Holiday, holiday_id)
        if holiday is None:
            raise NotFoundException("Holiday", str(holiday_id))
        return holiday

    @staticmethod
    async def _validate_employee_scope(
        db: AsyncSession,
        holiday_type: HolidayType,
        employee_id: Optional[uuid.UUID],
    ) -> None:
        if holiday_type is not HolidayType.EMPLOYEE:
            return
        if employee_id is None:
            raise ValidationException(
                {"employee_id": ["Employee-specific holidays require an employee_id."]}
            )
        if await db.get(Employee, employee_id) is None:
            raise ValidationException(
                {"employee_id": [f"Employee '{employee_id}' does not exist."]}
            )

    @staticmethod
    async def list_holidays(
        db: AsyncSession,
        *,
        year: Optional[int] = None,
    ) -> list[HolidayOut]:
        query = select(Holiday).order_by(Holiday.start_date)
        if year is not None:
            query = query.where(
                or_(
                    extract("year", Holiday.start_date) == year,
                    extract("year", Holiday.end_date) == year,
                )
            )
        result = await db.execute(query)
        return [HolidayOut.model_validate(h) for h in result.scalars().all()]

    @staticmethod
    async def create_holiday(
        db: AsyncSession,
        data: HolidayCreate,
        created_by_id: Optional[uuid.UUID] = None,
    ) -> HolidayOut:
        await HolidayService._validate_employee_scope(db, data.type, data.employee_id)

        is_employee = data.type is HolidayType.EMPLOYEE
        holiday = Holiday(
            name=data.name,
            start_date=data.start_date,
            end_date=data.end_date,
            type=data.type,
            employee_id=data.employee_id if is_employee else None,
            repeat_weekly=data.repeat_weekly if is_employee else False,
            is_locked=data.is_locked,
            created_by_id=created_by_id,
        )
        db.add(holiday)
        await db.flush()
        return HolidayOut.model_validate(holiday)

    @staticmethod
    async def update_holiday(
        db: AsyncSession,
        holiday_id: uuid.UUID,
        data: HolidayUpdate,
    ) -> HolidayOut:
        holiday = await HolidayService._get_or_404(db, holiday_id)
        changes = data.model_dump(exclude_unset=True)

        start = changes.get("start_date") or holiday.start_date
        end = changes.get("end_date") or holiday.end_date
        if end < start:
            raise ValidationException(
                {"end_date": ["End date must be on or after start date."]}
            )

        new_type = changes.get("type") or holiday.type
        if new_type is HolidayType.EMPLOYEE:
            employee_id = changes.get("employee_id", holiday.employee_id)
            await HolidayService._validate_employee_scope(db, new_type, employee_id)
            holiday.employee_id = employee_id
            holiday.repeat_weekly = bool(changes.get("repeat_weekly", holiday.repeat_weekly))
        else:
            holiday.employee_id = None
            holiday.repeat_weekly = False

        holiday.type = new_type
        holiday.start_date = start
        holiday.end_date = end
        if changes.get("name"):
            holiday.name = changes["name"]
        if changes.get("is_locked") is not None:
            holiday.is_locked = changes["is_locked"]

        await db.flush()
        return HolidayOut.model_validate(holiday)

    @staticmethod
    async def delete_holiday(db: AsyncSession, holiday_id: uuid.UUID) -> None:
        holiday = await HolidayService._get_or_404(db, holiday_id)
        await db.delete(holiday)
        await db.flush()

    @staticmethod
    async def load_calendar(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
    ) -> tuple[list[HolidayInterval], frozenset[int]]:
        """Return (one-off intervals overlapping the range, recurring weekdays).

        Intervals cover org-wide holidays plus the employee's own
        non-recurring ones. Recurring weekdays come from the employee's
        ``repeat_weekly`` holidays, keyed on the weekday of their start date.
        """
        applies_to_employee = or_(
            Holiday.type.in_(ORG_WIDE_HOLIDAY_TYPES),
            and_(
                Holiday.type == HolidayType.EMPLOYEE,
                Holiday.employee_id == employee_id,
            ),
        )
        ranged = await db.execute(
            select(Holiday).where(
                Holiday.start_date <= end,
                Holiday.end_date >= start,
                Holiday.repeat_weekly.is_(False),
                applies_to_employee,
            )
        )
        intervals = [
            HolidayInterval(
                start=h.start_date,
                end=h.end_date,
                type=h.type,
                employee_id=h.employee_id,
            )
            for h in ranged.scalars().all()
        ]

        recurring = await db.execute(
            select(Holiday.start_date).where(
                Holiday.type == HolidayType.EMPLOYEE,
                Holiday.employee_id == employee_id,
                Holiday.repeat_weekly.is_(True),
            )
        )
        weekdays = frozenset(d.weekday() for d in recurring.scalars().all())
        return intervals, weekdays

    @staticmethod
    async def working_days_for(
        db: AsyncSession,
        employee: Employee,
        start: date,
        end: date,
    ) -> int:
        """Count the employee's working days in ``[start, end]``."""
        schedule = await ScheduleService.resolve_for_employee(db, employee)
        intervals, recurring = await HolidayService.load_calendar(
            db, employee.id, start, end,
        )
        return count_working_days(
            start,
            end,
            schedule.working_weekdays,
            intervals,
            recurring,
            employee.id,
        )
