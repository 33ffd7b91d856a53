"""Core HR Pydantic v2 schemas — employee responses and manager assignment.

Naming conventions:
  - *Request            → request bodies (write)
  - *Out                → response bodies (read)
  - *Brief              → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    position: Optional[str] = None


class EmployeeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    position: Optional[str] = None
    start_date: date
    manager_id: Optional[uuid.UUID] = None
    work_schedule_id: Optional[uuid.UUID] = None
    is_active: bool


class ManagerAssignmentRequest(BaseModel):
    """Set or clear (``null``) an employee's manager."""

    manager_id: Optional[uuid.UUID] = None


class IsManagerOut(BaseModel):
    is_manager: bool
