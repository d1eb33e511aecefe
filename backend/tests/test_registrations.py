"""
Tests for registration, cancellation and stats endpoints.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from app.services import registration_service
from conftest import make_event, registration_count


async def register(client: AsyncClient, event_id: int, email: str, name: str = "Ada"):
    return await client.post(
        f"/api/events/{event_id}/register", json={"name": name, "email": email}
    )


@pytest.mark.asyncio
async def test_register(client: AsyncClient, test_event):
    response = await register(client, test_event.id, "ada@example.com")
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Registration successful"
    assert isinstance(body["registrationId"], int)


@pytest.mark.asyncio
async def test_register_duplicate(client: AsyncClient, storage, test_event):
    """Same email twice: 409 duplicate_registration, count unchanged."""
    assert (await register(client, test_event.id, "ada@example.com")).status_code == 201

    response = await register(client, test_event.id, "ada@example.com")
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "duplicate_registration"
    assert await registration_count(storage, test_event.id) == 1


@pytest.mark.asyncio
async def test_register_full_event(client: AsyncClient, storage):
    event = await make_event(storage, capacity=1)
    assert (await register(client, event.id, "a@example.com")).status_code == 201

    response = await register(client, event.id, "b@example.com")
    assert response.status_code == 409
    assert response.json()["error"] == {"code": "capacity_exceeded", "message": "Event is full"}


@pytest.mark.asyncio
async def test_register_past_event(client: AsyncClient, storage, past_event):
    response = await register(client, past_event.id, "ada@example.com")
    assert response.status_code == 410
    assert response.json()["error"]["code"] == "event_expired"
    assert await registration_count(storage, past_event.id) == 0


@pytest.mark.asyncio
async def test_register_unknown_event(client: AsyncClient):
    response = await register(client, 99999, "ada@example.com")
    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("action", ["register", "cancel"])
async def test_event_id_beyond_integer_range_is_invalid_input(client: AsyncClient, action):
    response = await client.post(
        f"/api/events/99999999999999999999999/{action}",
        json={"name": "Ada", "email": "ada@example.com"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_input"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"name": "Ada", "email": "not-an-email"},
        {"name": "", "email": "ada@example.com"},
        {"email": "ada@example.com"},
        {"name": "Ada"},
    ],
)
async def test_register_invalid_payload(client: AsyncClient, storage, test_event, payload):
    """Field validation happens before the engine runs."""
    response = await client.post(f"/api/events/{test_event.id}/register", json=payload)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_input"
    assert await registration_count(storage, test_event.id) == 0


@pytest.mark.asyncio
async def test_cancel(client: AsyncClient, storage, test_event):
    await register(client, test_event.id, "ada@example.com")

    response = await client.post(
        f"/api/events/{test_event.id}/cancel", json={"email": "ada@example.com"}
    )
    assert response.status_code == 200
    assert response.json() == {"message": "Registration cancelled"}
    assert await registration_count(storage, test_event.id) == 0


@pytest.mark.asyncio
async def test_cancel_then_reregister(client: AsyncClient, test_event):
    await register(client, test_event.id, "ada@example.com")
    await client.post(f"/api/events/{test_event.id}/cancel", json={"email": "ada@example.com"})

    response = await register(client, test_event.id, "ada@example.com")
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_cancel_never_registered(client: AsyncClient, storage, test_event):
    """Cancelling a registration that never existed is 404; count unaffected."""
    await register(client, test_event.id, "ada@example.com")

    response = await client.post(
        f"/api/events/{test_event.id}/cancel", json={"email": "grace@example.com"}
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "not_found"
    assert await registration_count(storage, test_event.id) == 1


@pytest.mark.asyncio
async def test_cancel_invalid_email(client: AsyncClient, test_event):
    response = await client.post(f"/api/events/{test_event.id}/cancel", json={"email": "nope"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_stats_after_three_registrations(client: AsyncClient, test_event):
    """3 registrations against capacity 10."""
    for i in range(3):
        assert (await register(client, test_event.id, f"a{i}@example.com")).status_code == 201

    response = await client.get(f"/api/events/{test_event.id}/stats")
    assert response.status_code == 200
    assert response.json() == {
        "totalRegistrations": 3,
        "remainingCapacity": 7,
        "percentUsed": "30.00",
    }


@pytest.mark.asyncio
async def test_stats_empty_event(client: AsyncClient, test_event):
    response = await client.get(f"/api/events/{test_event.id}/stats")
    assert response.json() == {
        "totalRegistrations": 0,
        "remainingCapacity": 10,
        "percentUsed": "0.00",
    }


@pytest.mark.asyncio
async def test_stats_unknown_event(client: AsyncClient):
    response = await client.get("/api/events/99999/stats")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_storage_failure_is_generic(client: AsyncClient, test_event, monkeypatch):
    """Storage errors map to 503 without leaking driver detail."""

    async def broken_lock(session, event_id):
        raise OperationalError("SELECT ... FOR UPDATE", {}, Exception("password authentication failed"))

    monkeypatch.setattr(registration_service, "_lock_event", broken_lock)

    response = await register(client, test_event.id, "ada@example.com")
    assert response.status_code == 503
    assert response.json()["error"]["code"] == "storage_failure"
    assert "password" not in response.text


@pytest.mark.asyncio
async def test_request_id_header(client: AsyncClient):
    response = await client.get("/api/events", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"
    assert "X-Response-Time" in response.headers
