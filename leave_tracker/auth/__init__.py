"""Auth module — bearer JWT resolution and role gates."""
