from app.schemas.event import EventCreate, EventCreated, EventResponse
from app.schemas.registration import (
    RegistrationCreate, RegistrationCancel, RegistrationResponse, CancelResponse, EventStats,
)

__all__ = [
    "EventCreate", "EventCreated", "EventResponse",
    "RegistrationCreate", "RegistrationCancel", "RegistrationResponse", "CancelResponse",
    "EventStats",
]
