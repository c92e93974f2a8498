"""
Adaptive Learning Engine - Keyed Locks
Per-key asyncio locks used to serialize read-modify-write cycles
"""
import asyncio
from collections.abc import AsyncIterator, Hashable, Iterable
from contextlib import AsyncExitStack, asynccontextmanager


class KeyedLock:
    """
    Registry of asyncio locks addressed by an arbitrary hashable key.

    Locks are created on first use and dropped once nobody holds or waits
    for them, so the registry only grows with concurrent activity.

    Usage:
        async with progress_locks.hold(student_id):
            ...
    """

    def __init__(self, name: str):
        self.name = name
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    @asynccontextmanager
    async def hold_many(self, keys: Iterable[Hashable]) -> AsyncIterator[None]:
        """Acquire several keys in a stable order (avoids lock-order deadlocks)."""
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys), key=repr):
                await stack.enter_async_context(self.hold(key))
            yield


# student_id progress upserts, blocks and unlock propagation
progress_locks = KeyedLock("progress")

# (student_id, topic) mastery merges and ("attempt", attempt_id) analyses
knowledge_locks = KeyedLock("knowledge")

# student_id roadmap generation and status changes
roadmap_locks = KeyedLock("roadmap")
