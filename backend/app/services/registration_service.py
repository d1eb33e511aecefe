"""
Registration engine: concurrency-safe register and cancel.

CONCURRENCY STRATEGY: Pessimistic Row Lock
==========================================

Problem:
  Two attendees try to take the last place at the same time.
  Both count registrations=C-1, both insert, both succeed.
  Result: C+1 registrations for an event of capacity C.

Solution:
  Every registration runs as one transaction that starts by locking the
  event row:

  1. SELECT ... FROM events WHERE id = :event_id FOR UPDATE
  2. Reject past events
  3. SELECT COUNT(*) FROM registrations WHERE event_id = :event_id
  4. Find-or-create the user by email (inside a SAVEPOINT)
  5. Reject an existing (user, event) registration
  6. INSERT the registration, COMMIT

  The row lock is held until COMMIT/ROLLBACK, so the count in step 3 and the
  insert in step 6 are never interleaved with another registration for the
  same event. Registrations for different events do not contend.

  Stores without row locks (SQLite) get the same serialization from the
  Storage handle's event lock strategy, held around the whole transaction.

  The unique constraint on (user_id, event_id) is the final safety net: a
  violation on insert is reported as DuplicateRegistration.

Cancellation takes no event lock. It deletes one row keyed by the unique
constraint and relies on the atomicity of DELETE.

Any failure rolls the transaction back before the error surfaces: no orphan
user and no orphan registration are ever committed.
"""

import time
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import Storage
from app.models.event import Event
from app.models.user import User
from app.models.registration import Registration
from app.services.stats_service import count_registrations
from app.core.clock import as_utc, utcnow
from app.core.exceptions import (
    CapacityExceeded,
    DuplicateRegistration,
    EventExpired,
    NotFound,
    RegistrationServiceError,
    storage_errors,
)
from app.core.metrics import (
    record_registration_attempt,
    record_cancellation_attempt,
    registration_latency,
)
from app.core.logging import get_logger

logger = get_logger(__name__)


async def register(
    storage: Storage,
    event_id: int,
    name: str,
    email: str,
) -> Registration:
    """
    Register an attendee for an event.

    Raises NotFound, EventExpired, CapacityExceeded, DuplicateRegistration or
    StorageFailure; on any of them nothing is committed.
    """
    start_time = time.perf_counter()
    try:
        async with storage_errors("register"):
            async with storage.event_lock.hold(event_id):
                async with storage.session() as session:
                    async with session.begin():
                        registration = await _register_in_transaction(
                            session, event_id, name, email
                        )
    except RegistrationServiceError as exc:
        record_registration_attempt(exc.code)
        logger.info(
            "registration_rejected",
            event_id=event_id,
            email=email,
            reason=exc.code,
        )
        raise
    finally:
        registration_latency.observe(time.perf_counter() - start_time)

    record_registration_attempt("success")
    logger.info(
        "registration_created",
        registration_id=registration.id,
        user_id=registration.user_id,
        event_id=event_id,
    )
    return registration


async def _register_in_transaction(
    session: AsyncSession,
    event_id: int,
    name: str,
    email: str,
) -> Registration:
    event = await _lock_event(session, event_id)
    if event is None:
        raise NotFound("Event not found", event_id=event_id)

    if as_utc(event.scheduled_at) < utcnow():
        raise EventExpired(event_id=event_id)

    # Counted after the lock is held, so no concurrent insert can slip in
    # between this read and our own insert.
    taken = await count_registrations(session, event_id)
    if taken >= event.capacity:
        raise CapacityExceeded(event_id=event_id, capacity=event.capacity)

    user = await _find_or_create_user(session, name, email)

    existing = await session.execute(
        select(Registration.id).where(
            Registration.user_id == user.id,
            Registration.event_id == event_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise DuplicateRegistration(event_id=event_id, user_id=user.id)

    registration = Registration(user_id=user.id, event_id=event_id)
    session.add(registration)
    try:
        await session.flush()
    except IntegrityError as exc:
        raise DuplicateRegistration(event_id=event_id, user_id=user.id) from exc
    await session.refresh(registration)
    return registration


async def _lock_event(session: AsyncSession, event_id: int) -> Optional[Event]:
    result = await session.execute(
        select(Event).where(Event.id == event_id).with_for_update()
    )
    return result.scalar_one_or_none()


async def _get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def _find_or_create_user(session: AsyncSession, name: str, email: str) -> User:
    """
    Resolve the attendee by email, creating the user if absent.

    The insert runs in a SAVEPOINT. If a concurrent registration for another
    event created the same email first, the unique violation only rolls back
    the savepoint and the winner's row is fetched instead. An existing user's
    name is left as it is.
    """
    user = await _get_user_by_email(session, email)
    if user is not None:
        return user

    try:
        async with session.begin_nested():
            user = User(name=name, email=email)
            session.add(user)
            await session.flush()
    except IntegrityError:
        user = await _get_user_by_email(session, email)
        if user is None:
            raise
        logger.debug("user_created_concurrently", user_id=user.id)
        return user

    logger.info("user_created", user_id=user.id)
    return user


async def cancel(storage: Storage, event_id: int, email: str) -> None:
    """
    Cancel the attendee's registration for an event.

    Allowed for past events as well. Raises NotFound when the user is unknown
    or was never registered for the event, StorageFailure on store errors.
    """
    try:
        async with storage_errors("cancel"):
            async with storage.session() as session:
                async with session.begin():
                    await _cancel_in_transaction(session, event_id, email)
    except RegistrationServiceError as exc:
        record_cancellation_attempt(exc.code)
        logger.info("cancellation_rejected", event_id=event_id, email=email, reason=exc.code)
        raise

    record_cancellation_attempt("success")
    logger.info("registration_cancelled", event_id=event_id, email=email)


async def _cancel_in_transaction(session: AsyncSession, event_id: int, email: str) -> None:
    user = await _get_user_by_email(session, email)
    if user is None:
        raise NotFound("User not found", email=email)

    result = await session.execute(
        delete(Registration)
        .where(
            Registration.user_id == user.id,
            Registration.event_id == event_id,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFound("User not registered for this event", event_id=event_id)
