"""Per-user async locks.

Submission, approval, rejection and cancellation each read and then write
state owned by a single user (the overlap set and the balance counters).
Holding that user's lock across the read, the write and the commit keeps
two concurrent operations on the same user from interleaving. Different
users never contend.
"""

from __future__ import annotations

import asyncio
import uuid
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator


class UserLockRegistry:
    """Hands out one ``asyncio.Lock`` per user id.

    Locks are held weakly: once no coroutine references a user's lock it is
    dropped, so the registry does not grow with the user base.
    """

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def get(self, user_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, user_id: uuid.UUID) -> AsyncIterator[None]:
        lock = self.get(user_id)
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


user_locks = UserLockRegistry()
