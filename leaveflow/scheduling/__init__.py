"""Scheduling module — work schedules, holidays and working-day counting."""

from leaveflow.scheduling.models import Holiday, WorkSchedule

__all__ = ["Holiday", "WorkSchedule"]
