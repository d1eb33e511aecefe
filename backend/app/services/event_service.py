"""
Event directory: create, fetch and list events.
"""

from datetime import datetime
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.event import Event, MIN_CAPACITY, MAX_CAPACITY
from app.core.clock import as_utc, utcnow
from app.core.exceptions import InvalidInput, NotFound, storage_errors
from app.core.logging import get_logger

logger = get_logger(__name__)


def _require_text(field: str, value: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput(f"{field} is required", field=field)
    return str(value).strip()


async def create_event(
    db: AsyncSession,
    *,
    title: str,
    scheduled_at: datetime,
    location: str,
    capacity: int,
) -> Event:
    """
    Create an event. The scheduled time is normalized to UTC.

    Past times are accepted here; registration is what rejects them.
    Commits before returning so the listing cache can be invalidated safely.
    """
    title = _require_text("title", title)
    location = _require_text("location", location)
    if scheduled_at is None:
        raise InvalidInput("datetime is required", field="datetime")
    if isinstance(capacity, bool) or not isinstance(capacity, int):
        raise InvalidInput("Capacity must be an integer", field="capacity")
    if not MIN_CAPACITY <= capacity <= MAX_CAPACITY:
        raise InvalidInput(
            f"Capacity must be {MIN_CAPACITY}-{MAX_CAPACITY}", field="capacity"
        )

    async with storage_errors("create_event"):
        event = Event(
            title=title,
            scheduled_at=as_utc(scheduled_at),
            location=location,
            capacity=capacity,
        )
        db.add(event)
        await db.flush()
        await db.refresh(event)
        await db.commit()

    logger.info("event_created", event_id=event.id, title=event.title, capacity=event.capacity)
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """Get a single event by ID."""
    async with storage_errors("get_event"):
        result = await db.execute(select(Event).where(Event.id == event_id))
        event = result.scalar_one_or_none()

    if not event:
        raise NotFound("Event not found", event_id=event_id)
    return event


async def list_events(db: AsyncSession, upcoming_only: bool = False) -> list[Event]:
    """
    List events ordered by scheduled time, earliest first.
    Uses the index on events.datetime for the ordering and the upcoming filter.
    """
    query = select(Event)
    if upcoming_only:
        query = query.where(Event.scheduled_at >= utcnow())
    query = query.order_by(Event.scheduled_at.asc(), Event.id.asc())

    async with storage_errors("list_events"):
        result = await db.execute(query)
        return list(result.scalars().all())
