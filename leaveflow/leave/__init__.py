"""Leave module — leave types, balances, requests and their lifecycle."""

from leaveflow.leave.models import LeaveBalance, LeaveRequest, LeaveType

__all__ = ["LeaveBalance", "LeaveRequest", "LeaveType"]
