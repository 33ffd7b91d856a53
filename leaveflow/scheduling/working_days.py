"""Working-day calculator.

Pure functions, no database access. The service layer loads the schedule
and holidays and hands them over as plain values:

  - ``working_weekdays``: weekday numbers (0=Mon … 6=Sun) the schedule works
  - ``holidays``: one-off holiday intervals (inclusive on both ends)
  - ``weekly_recurring_weekdays``: standing weekly days off for the employee

A day counts iff its weekday is working, it is not inside an applicable
holiday interval, and its weekday is not a recurring day off.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from typing import AbstractSet, Iterable, Iterator, Optional

from leaveflow.common.constants import HolidayType


@dataclass(frozen=True)
class HolidayInterval:
    """An inclusive ``[start, end]`` date interval with its holiday type."""

    start: date
    end: date
    type: HolidayType
    employee_id: Optional[uuid.UUID] = None

    def overlaps(self, start: date, end: date) -> bool:
        return self.start <= end and self.end >= start

    def applies_to(self, employee_id: Optional[uuid.UUID]) -> bool:
        if self.type is HolidayType.EMPLOYEE:
            return employee_id is not None and self.employee_id == employee_id
        return True

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day in ``[start, end]``."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def count_working_days(
    start: date,
    end: date,
    working_weekdays: AbstractSet[int],
    holidays: Iterable[HolidayInterval] = (),
    weekly_recurring_weekdays: AbstractSet[int] = frozenset(),
    employee_id: Optional[uuid.UUID] = None,
) -> int:
    """Count working days in the inclusive range ``[start, end]``.

    Inverted ranges yield 0; callers validate ``end >= start`` beforehand.
    """
    if end < start:
        return 0

    # Narrow to intervals that overlap the range and apply to this employee
    relevant = [
        h for h in holidays
        if h.overlaps(start, end) and h.applies_to(employee_id)
    ]

    count = 0
    for day in iter_days(start, end):
        weekday = day.weekday()
        if weekday not in working_weekdays:
            continue
        if weekday in weekly_recurring_weekdays:
            continue
        if any(h.contains(day) for h in relevant):
            continue
        count += 1
    return count
