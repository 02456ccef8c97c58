"""Per-evidence advisory locks for linking batches.

Without locks, two batches started from the same session may interleave
their writes. When enabled, a batch holds the lock of every evidence item it
touches until the batch has been joined. Locks are always acquired in
sorted id order, so overlapping batches cannot deadlock.

Disabled registries hand out no-op lock scopes.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable


class EvidenceLockRegistry:
    """Lazily created asyncio.Lock per evidence id."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, evidence_id: str) -> asyncio.Lock:
        lock = self._locks.get(evidence_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[evidence_id] = lock
        return lock

    def is_locked(self, evidence_id: str) -> bool:
        lock = self._locks.get(evidence_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, evidence_ids: Iterable[str]) -> AsyncIterator[None]:
        """Hold the locks of all given evidence ids for the duration of the block."""
        if not self.enabled:
            yield
            return

        acquired: list[asyncio.Lock] = []
        try:
            for evidence_id in sorted(set(evidence_ids)):
                lock = self._lock_for(evidence_id)
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
