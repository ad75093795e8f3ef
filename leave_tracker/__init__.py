"""Leave Tracker — leave requests, approvals and balances."""
