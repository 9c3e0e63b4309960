"""Per-key mutual exclusion for asyncio tasks."""

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager


class KeyedLock:
    """One ``asyncio.Lock`` per key, dropped once no task holds or awaits it.

    Tasks holding different keys never block each other; tasks on the same
    key are served in the order they asked.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        """Number of keys currently held or awaited."""
        return len(self._locks)

    def locked(self, key: Hashable) -> bool:
        """Whether some task currently holds ``key``."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()
