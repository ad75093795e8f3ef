"""Rate limiting configuration using slowapi.

Provides a module-level Limiter instance that routers use for per-endpoint
limits on write operations, wired into the FastAPI app in main.py.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Write endpoints opt in with @limiter.limit(WRITE_LIMIT).
WRITE_LIMIT = "30/minute"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["60/minute"],
)
