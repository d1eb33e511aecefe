"""
Utilization stats for an event.

Read without a lock or explicit transaction: the numbers are informational
and may be stale under concurrent registrations. remaining_capacity can
briefly read as zero or negative in that window.
"""

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.event import Event
from app.models.registration import Registration
from app.schemas.registration import EventStats
from app.core.exceptions import NotFound, storage_errors


def compute_stats(capacity: int, total: int) -> EventStats:
    if capacity <= 0:
        raise ValueError("capacity must be positive")
    return EventStats(
        total_registrations=total,
        remaining_capacity=capacity - total,
        percent_used=f"{total / capacity * 100:.2f}",
    )


async def count_registrations(db: AsyncSession, event_id: int) -> int:
    result = await db.execute(
        select(func.count(Registration.id)).where(Registration.event_id == event_id)
    )
    return int(result.scalar_one())


async def get_event_stats(db: AsyncSession, event_id: int) -> EventStats:
    async with storage_errors("get_event_stats"):
        capacity = (
            await db.execute(select(Event.capacity).where(Event.id == event_id))
        ).scalar_one_or_none()
        if capacity is None:
            raise NotFound("Event not found", event_id=event_id)
        total = await count_registrations(db, event_id)

    return compute_stats(capacity, total)
