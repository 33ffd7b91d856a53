"""LeaveFlow — leave requests, approvals and balances."""
