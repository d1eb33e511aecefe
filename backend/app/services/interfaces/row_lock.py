"""
Row lock strategy - no in-process coordination.
Relies entirely on SELECT ... FOR UPDATE in the database.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from app.services.interfaces.event_lock import EventLockStrategy


class RowLockStrategy(EventLockStrategy):
    """
    Database row locks only.

    Use when:
    - The store supports row-level locking (PostgreSQL)
    - More than one application process serves registrations
    """

    name = "row"

    @asynccontextmanager
    async def hold(self, event_id: int) -> AsyncIterator[None]:
        yield
