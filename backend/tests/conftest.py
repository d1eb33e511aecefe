"""
Pytest fixtures for storage, HTTP client and seeded events.

Each test gets a fresh file-backed SQLite database (set TEST_DATABASE_URL to
run against PostgreSQL instead). Redis is disabled; cache tests install a
fakeredis client explicitly.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")

from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select, func

from app.main import app
from app.db.session import Storage, create_storage, get_storage
from app.models.event import Event
from app.models.registration import Registration
from app.models.user import User
from app.services.event_service import create_event

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")


@pytest_asyncio.fixture(scope="function")
async def storage(tmp_path) -> AsyncGenerator[Storage, None]:
    """Create tables, yield the storage handle, then drop tables for isolation."""
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'registrations.db'}"
    storage = create_storage(url)
    await storage.create_all()

    yield storage

    await storage.drop_all()
    await storage.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(storage: Storage) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the storage dependency with the test storage."""
    app.dependency_overrides[get_storage] = lambda: storage

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_event(storage: Storage, capacity: int = 10, days_ahead: int = 30, **fields) -> Event:
    async with storage.session() as session:
        return await create_event(
            session,
            title=fields.get("title", "Test Concert"),
            scheduled_at=datetime.now(timezone.utc) + timedelta(days=days_ahead),
            location=fields.get("location", "Test Venue"),
            capacity=capacity,
        )


async def registration_count(storage: Storage, event_id: int) -> int:
    async with storage.session() as session:
        result = await session.execute(
            select(func.count(Registration.id)).where(Registration.event_id == event_id)
        )
        return result.scalar_one()


async def user_count(storage: Storage) -> int:
    async with storage.session() as session:
        return (await session.execute(select(func.count(User.id)))).scalar_one()


@pytest_asyncio.fixture
async def test_event(storage: Storage) -> Event:
    """An upcoming event with 10 places."""
    return await make_event(storage, capacity=10)


@pytest_asyncio.fixture
async def past_event(storage: Storage) -> Event:
    """An event that happened yesterday."""
    return await make_event(storage, capacity=10, days_ahead=-1, title="Yesterday's Show")
