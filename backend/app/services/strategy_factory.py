"""
Event lock strategy factory.
Configures how capacity decisions are serialized per event.
"""

from sqlalchemy.engine import make_url

from app.services.interfaces.event_lock import EventLockStrategy
from app.services.interfaces.row_lock import RowLockStrategy
from app.services.lock_service import InProcessEventLock

STRATEGIES = ("auto", "row", "process")


def build_event_lock(strategy: str, database_url: str) -> EventLockStrategy:
    """
    Build the configured event lock strategy.

    Strategy selection:
    - row: PostgreSQL SELECT ... FOR UPDATE only
    - process: per-event asyncio.Lock around the transaction
    - auto: process for SQLite (no row locks), row for everything else

    Each Storage handle gets its own instance; there is no module-level
    singleton.
    """
    strategy = strategy.lower()
    if strategy not in STRATEGIES:
        raise ValueError(
            f"Unknown EVENT_LOCK_STRATEGY {strategy!r}, expected one of {', '.join(STRATEGIES)}"
        )

    if strategy == "auto":
        backend = make_url(database_url).get_backend_name()
        strategy = "process" if backend == "sqlite" else "row"

    if strategy == "process":
        return InProcessEventLock()
    return RowLockStrategy()
