"""User directory module — users, leave balances, team membership."""
