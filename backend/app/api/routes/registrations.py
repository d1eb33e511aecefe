"""
Registration and cancellation endpoints.

Both run their own transaction through the Storage handle rather than the
per-request session, so the event lock can wrap the whole transaction.
"""

from fastapi import APIRouter, Depends, Path, status

from app.db.base import MAX_ID
from app.db.session import Storage, get_storage
from app.schemas.registration import (
    RegistrationCreate,
    RegistrationCancel,
    RegistrationResponse,
    CancelResponse,
)
from app.services.registration_service import register, cancel

router = APIRouter(prefix="/events", tags=["Registrations"])


@router.post(
    "/{event_id}/register",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_endpoint(
    data: RegistrationCreate,
    event_id: int = Path(..., ge=1, le=MAX_ID),
    storage: Storage = Depends(get_storage),
):
    """
    Register an attendee by name and email.

    Rejected with 404 (no such event), 410 (event already happened),
    409 capacity_exceeded (event full) or 409 duplicate_registration.
    """
    registration = await register(storage, event_id, data.name, str(data.email))
    return RegistrationResponse(registration_id=registration.id)


@router.post("/{event_id}/cancel", response_model=CancelResponse)
async def cancel_endpoint(
    data: RegistrationCancel,
    event_id: int = Path(..., ge=1, le=MAX_ID),
    storage: Storage = Depends(get_storage),
):
    """Cancel the registration held by this email for the event."""
    await cancel(storage, event_id, str(data.email))
    return CancelResponse()
