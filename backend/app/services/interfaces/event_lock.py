"""
Event lock strategy interface.
Allows swapping how capacity decisions for one event are serialized.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager


class EventLockStrategy(ABC):
    """
    Interface for per-event serialization of registration transactions.

    The registration transaction always reads the event row with
    SELECT ... FOR UPDATE. A strategy decides what, if anything, is held
    around that transaction in addition.

    Implementations:
    - RowLockStrategy: nothing extra, the database row lock is enough
    - InProcessEventLock: per-event asyncio.Lock for stores without row locks
    """

    name: str = "abstract"

    @abstractmethod
    def hold(self, event_id: int) -> AsyncContextManager[None]:
        """
        Serialize the enclosed block against other holders for the same event.

        Must be entered before the transaction begins and exited after it
        commits or rolls back.
        """
