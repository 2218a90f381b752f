"""Per-key asyncio locks.

Serializes work on one key (a session id, an artifact path) while leaving
unrelated keys fully concurrent. Entries are dropped once nobody holds or
waits on them.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import (
    AsyncIterator,
    Dict,
)


class KeyedLock:
    """Registry of asyncio locks indexed by string key."""

    def __init__(self):
        """Initialize an empty registry."""
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def locked(self, key: str) -> bool:
        """Whether the lock for ``key`` is currently held."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()
