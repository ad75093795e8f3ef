"""Leave module — working-day calendar, balance ledger, request lifecycle."""
