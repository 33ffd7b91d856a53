"""Scheduling Pydantic v2 schemas — work schedules and holidays."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leaveflow.common.constants import HolidayType


# ═════════════════════════════════════════════════════════════════════
# Work Schedule
# ═════════════════════════════════════════════════════════════════════


class WorkScheduleCreate(BaseModel):
    """Payload for creating a work schedule."""

    name: str = Field(..., min_length=1, max_length=100)
    monday: bool = True
    tuesday: bool = True
    wednesday: bool = True
    thursday: bool = True
    friday: bool = True
    saturday: bool = False
    sunday: bool = False
    start_time: time
    end_time: time
    is_default: bool = False


class WorkScheduleUpdate(BaseModel):
    """Partial update; only supplied fields are written."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    monday: Optional[bool] = None
    tuesday: Optional[bool] = None
    wednesday: Optional[bool] = None
    thursday: Optional[bool] = None
    friday: Optional[bool] = None
    saturday: Optional[bool] = None
    sunday: Optional[bool] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_default: Optional[bool] = None


class WorkScheduleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    monday: bool
    tuesday: bool
    wednesday: bool
    thursday: bool
    friday: bool
    saturday: bool
    sunday: bool
    start_time: time
    end_time: time
    is_default: bool
    created_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Holiday
# ═════════════════════════════════════════════════════════════════════


class HolidayCreate(BaseModel):
    """Payload for creating a holiday (inclusive date range)."""

    name: str = Field(..., min_length=1, max_length=200)
    start_date: date
    end_date: date
    type: HolidayType
    employee_id: Optional[uuid.UUID] = None
    repeat_weekly: bool = False
    is_locked: bool = False

    @model_validator(mode="after")
    def validate_range(self) -> HolidayCreate:
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class HolidayUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    type: Optional[HolidayType] = None
    employee_id: Optional[uuid.UUID] = None
    repeat_weekly: Optional[bool] = None
    is_locked: Optional[bool] = None


class HolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    start_date: date
    end_date: date
    type: HolidayType
    employee_id: Optional[uuid.UUID] = None
    repeat_weekly: bool
    is_locked: bool
    created_by_id: Optional[uuid.UUID] = None
    created_at: datetime
