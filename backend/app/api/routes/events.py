"""
Event directory endpoints, with Redis caching on the listing.
"""

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import MAX_ID
from app.db.session import get_db
from app.schemas.event import EventCreate, EventCreated, EventResponse
from app.schemas.registration import EventStats
from app.services.event_service import create_event, get_event, list_events
from app.services.stats_service import get_event_stats
from app.services.cache_service import get_cached_events, set_cached_events, invalidate_event_cache
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("", response_model=EventCreated, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a new event with a capacity between 1 and 1000."""
    event = await create_event(db, **event_data.model_dump())
    await invalidate_event_cache()
    return EventCreated(event_id=event.id)


@router.get("", response_model=list[EventResponse])
async def list_events_endpoint(
    response: Response,
    upcoming_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    """
    List events ordered by scheduled time, earliest first.
    Results are cached in Redis until an event is created or the TTL expires.
    """
    cached = await get_cached_events(upcoming_only)
    if cached is not None:
        response.headers["X-Cache"] = "HIT"
        return [EventResponse(**item) for item in cached]

    events = [EventResponse.model_validate(e) for e in await list_events(db, upcoming_only)]
    await set_cached_events(upcoming_only, [e.model_dump(mode="json") for e in events])
    response.headers["X-Cache"] = "MISS"
    return events


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int = Path(..., ge=1, le=MAX_ID),
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by ID."""
    return await get_event(db, event_id)


@router.get("/{event_id}/stats", response_model=EventStats)
async def event_stats_endpoint(
    event_id: int = Path(..., ge=1, le=MAX_ID),
    db: AsyncSession = Depends(get_db),
):
    """Registration count, remaining capacity and percent used. Not cached."""
    return await get_event_stats(db, event_id)
