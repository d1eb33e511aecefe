"""
In-process event locks for stores without row-level locking.

SQLite ignores FOR UPDATE, so two registration transactions could both see
"capacity available". This strategy serializes them with one asyncio.Lock per
event id, held for the whole transaction.

Tradeoff: correctness only holds within a single process. Run with the row
strategy against PostgreSQL when more than one worker serves requests.
"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator

from app.services.interfaces.event_lock import EventLockStrategy
from app.core.logging import get_logger

logger = get_logger(__name__)


class InProcessEventLock(EventLockStrategy):
    """Per-event asyncio.Lock registry.

    Locks are kept in a WeakValueDictionary: an entry lives only while some
    task holds or waits on it, so the registry does not grow with the number
    of events ever registered for.
    """

    name = "process"

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, event_id: int) -> asyncio.Lock:
        lock = self._locks.get(event_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[event_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, event_id: int) -> AsyncIterator[None]:
        lock = self._lock_for(event_id)
        if lock.locked():
            logger.debug("event_lock_contended", event_id=event_id)
        async with lock:
            yield

    def active_locks(self) -> int:
        return len(self._locks)
