"""
Pydantic schemas for event-related request/response validation.

The wire name for the scheduled time is `datetime`; internally it is
`scheduled_at` to keep it apart from the datetime type.
"""

from datetime import datetime
from pydantic import BaseModel, Field

from app.models.event import MIN_CAPACITY, MAX_CAPACITY


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    scheduled_at: datetime = Field(..., alias="datetime")
    location: str = Field(..., min_length=1, max_length=255)
    capacity: int = Field(..., ge=MIN_CAPACITY, le=MAX_CAPACITY)

    model_config = {"populate_by_name": True, "str_strip_whitespace": True}


class EventCreated(BaseModel):
    event_id: int = Field(..., serialization_alias="eventId")


class EventResponse(BaseModel):
    id: int
    title: str
    scheduled_at: datetime = Field(..., serialization_alias="datetime")
    location: str
    capacity: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
