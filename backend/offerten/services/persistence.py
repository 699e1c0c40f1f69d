"""
Debounced persistence for open quote sessions.

Every edit schedules a write; a newer write for the same quote supersedes a
pending one, so a burst of edits ends in a single database round-trip.
Writes for one quote are serialized. Failures are logged and dropped; the
in-memory session state stays authoritative until the next successful write.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Tuple

from offerten.config import PERSIST_DEBOUNCE_SECONDS

logger = logging.getLogger("offerten-persistence")

WriteFactory = Callable[[], Awaitable[None]]


class PersistenceDebouncer:
    def __init__(self, delay: float = PERSIST_DEBOUNCE_SECONDS) -> None:
        self.delay = max(0.0, float(delay))
        self._pending: Dict[str, Tuple[asyncio.Task, WriteFactory]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def pending_keys(self):
        return set(self._pending)

    @property
    def locked_keys(self):
        return set(self._locks)

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def schedule(self, key: str, factory: WriteFactory) -> None:
        """Queue a write for ``key``. Must be called from a running event loop."""
        previous = self._pending.pop(key, None)
        if previous is not None:
            previous[0].cancel()
        task = asyncio.get_running_loop().create_task(self._run_later(key, factory))
        self._pending[key] = (task, factory)

    async def _run_later(self, key: str, factory: WriteFactory) -> None:
        await asyncio.sleep(self.delay)
        entry = self._pending.get(key)
        if entry is not None and entry[0] is asyncio.current_task():
            del self._pending[key]
        await self._write(key, factory)

    async def _write(self, key: str, factory: WriteFactory) -> None:
        async with self._lock(key):
            try:
                await factory()
                logger.debug(f"Persisted {key}", extra={"quote_number": key})
            except Exception:
                logger.exception(f"Persisting quote {key} failed", extra={"quote_number": key})

    def cancel(self, key: str) -> bool:
        """Drop the pending write for ``key``. Returns True if one was pending."""
        entry = self._pending.pop(key, None)
        if entry is None:
            return False
        entry[0].cancel()
        return True

    async def flush(self, key: str) -> None:
        """Run the pending write for ``key`` now and wait for any write in flight."""
        entry = self._pending.pop(key, None)
        if entry is not None:
            task, factory = entry
            task.cancel()
            await self._write(key, factory)
        else:
            async with self._lock(key):
                pass

    def release(self, key: str) -> None:
        """Forget the lock for ``key`` once nothing is pending or in flight."""
        lock = self._locks.get(key)
        if key not in self._pending and lock is not None and not lock.locked():
            del self._locks[key]

    async def flush_all(self) -> None:
        for key in list(self._pending):
            await self.flush(key)
