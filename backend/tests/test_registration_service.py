"""
Tests for the registration engine: register and cancel transactions.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.core.exceptions import (
    CapacityExceeded,
    DuplicateRegistration,
    EventExpired,
    NotFound,
    StorageFailure,
)
from app.models.user import User
from app.services import registration_service
from app.services.registration_service import register, cancel
from conftest import make_event, registration_count, user_count


@pytest.mark.asyncio
async def test_register_creates_user_and_registration(storage, test_event):
    """First registration creates the attendee and returns the new registration."""
    registration = await register(storage, test_event.id, "Ada", "ada@example.com")

    assert registration.id is not None
    assert registration.event_id == test_event.id
    assert registration.registered_at is not None
    assert await registration_count(storage, test_event.id) == 1
    assert await user_count(storage) == 1


@pytest.mark.asyncio
async def test_register_unknown_event(storage):
    """Missing event fails with NotFound and writes nothing."""
    with pytest.raises(NotFound):
        await register(storage, 99999, "Ada", "ada@example.com")
    assert await user_count(storage) == 0


@pytest.mark.asyncio
async def test_register_past_event(storage, past_event):
    """Past event fails with EventExpired; no registration and no orphan user."""
    with pytest.raises(EventExpired):
        await register(storage, past_event.id, "Ada", "ada@example.com")

    assert await registration_count(storage, past_event.id) == 0
    assert await user_count(storage) == 0


@pytest.mark.asyncio
async def test_register_full_event(storage):
    """The registration after the last place fails with CapacityExceeded."""
    event = await make_event(storage, capacity=2)
    await register(storage, event.id, "A", "a@example.com")
    await register(storage, event.id, "B", "b@example.com")

    with pytest.raises(CapacityExceeded):
        await register(storage, event.id, "C", "c@example.com")

    assert await registration_count(storage, event.id) == 2
    # The rejected attendee was never created
    assert await user_count(storage) == 2


@pytest.mark.asyncio
async def test_register_twice_same_email(storage, test_event):
    """Second registration with the same email is a DuplicateRegistration."""
    await register(storage, test_event.id, "Ada", "ada@example.com")

    with pytest.raises(DuplicateRegistration):
        await register(storage, test_event.id, "Ada Again", "ada@example.com")

    assert await registration_count(storage, test_event.id) == 1


@pytest.mark.asyncio
async def test_email_is_identity_across_events(storage, test_event):
    """A repeat attendee reuses the existing user; the stored name is not updated."""
    other = await make_event(storage, title="Other Show")
    first = await register(storage, test_event.id, "Ada", "ada@example.com")
    second = await register(storage, other.id, "Countess Lovelace", "ada@example.com")

    assert first.user_id == second.user_id
    async with storage.session() as session:
        user = (await session.execute(select(User))).scalar_one()
    assert user.name == "Ada"


@pytest.mark.asyncio
async def test_cancel_then_register_again(storage, test_event):
    """Cancelling removes the row, so re-registering succeeds."""
    await register(storage, test_event.id, "Ada", "ada@example.com")
    await cancel(storage, test_event.id, "ada@example.com")
    assert await registration_count(storage, test_event.id) == 0

    await register(storage, test_event.id, "Ada", "ada@example.com")
    assert await registration_count(storage, test_event.id) == 1


@pytest.mark.asyncio
async def test_cancel_frees_a_place(storage):
    """A cancellation on a full event lets the next attendee in."""
    event = await make_event(storage, capacity=1)
    await register(storage, event.id, "A", "a@example.com")
    with pytest.raises(CapacityExceeded):
        await register(storage, event.id, "B", "b@example.com")

    await cancel(storage, event.id, "a@example.com")
    await register(storage, event.id, "B", "b@example.com")
    assert await registration_count(storage, event.id) == 1


@pytest.mark.asyncio
async def test_cancel_unknown_user(storage, test_event):
    """Cancelling for an email that never registered anywhere is NotFound."""
    with pytest.raises(NotFound) as exc_info:
        await cancel(storage, test_event.id, "nobody@example.com")
    assert exc_info.value.message == "User not found"


@pytest.mark.asyncio
async def test_cancel_never_registered_for_event(storage, test_event):
    """Known user without a registration for this event is NotFound; counts untouched."""
    other = await make_event(storage, title="Other Show")
    await register(storage, other.id, "Ada", "ada@example.com")

    with pytest.raises(NotFound) as exc_info:
        await cancel(storage, test_event.id, "ada@example.com")

    assert exc_info.value.message == "User not registered for this event"
    assert await registration_count(storage, other.id) == 1


@pytest.mark.asyncio
async def test_cancel_past_event_is_allowed(storage):
    """Cancellation has no time window, even once the event has passed."""
    event = await make_event(storage, capacity=5)
    await register(storage, event.id, "Ada", "ada@example.com")

    async with storage.session() as session:
        async with session.begin():
            stored = await session.get(type(event), event.id)
            stored.scheduled_at = event.scheduled_at.replace(year=event.scheduled_at.year - 1)

    await cancel(storage, event.id, "ada@example.com")
    assert await registration_count(storage, event.id) == 0


@pytest.mark.asyncio
async def test_storage_error_becomes_storage_failure(storage, test_event, monkeypatch):
    """Driver errors surface as StorageFailure with no internal detail in the message."""

    async def broken_lock(session, event_id):
        raise OperationalError("SELECT ... FOR UPDATE", {}, Exception("connection reset by peer"))

    monkeypatch.setattr(registration_service, "_lock_event", broken_lock)

    with pytest.raises(StorageFailure) as exc_info:
        await register(storage, test_event.id, "Ada", "ada@example.com")

    assert "connection reset" not in exc_info.value.message
    assert isinstance(exc_info.value.__cause__, OperationalError)
    assert await user_count(storage) == 0


@pytest.mark.asyncio
async def test_user_created_concurrently_is_reused(storage, test_event, monkeypatch):
    """
    The email lookup misses but another transaction already created the user:
    the unique violation rolls back only the savepoint and the existing row is used.
    """
    other = await make_event(storage, title="Other Show")
    first = await register(storage, other.id, "Ada", "ada@example.com")

    real_lookup = registration_service._get_user_by_email
    lookups = []

    async def lookup_missing_first(session, email):
        lookups.append(email)
        if len(lookups) == 1:
            return None
        return await real_lookup(session, email)

    monkeypatch.setattr(registration_service, "_get_user_by_email", lookup_missing_first)

    second = await register(storage, test_event.id, "Ada", "ada@example.com")

    assert len(lookups) == 2
    assert second.user_id == first.user_id
    assert await user_count(storage) == 1
    assert await registration_count(storage, test_event.id) == 1
