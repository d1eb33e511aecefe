"""
Error taxonomy for the registration service.

Every error carries a stable machine-readable ``code`` and the HTTP status the
API surface maps it to. Services raise these; they never raise HTTPException.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.logging import get_logger

logger = get_logger(__name__)


class RegistrationServiceError(Exception):
    """Base class for all errors surfaced to callers."""

    code = "internal_error"
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)


class InvalidInput(RegistrationServiceError):
    code = "invalid_input"
    status_code = 400
    default_message = "Invalid input"


class NotFound(RegistrationServiceError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class EventExpired(RegistrationServiceError):
    code = "event_expired"
    status_code = 410
    default_message = "Cannot register for past event"


class CapacityExceeded(RegistrationServiceError):
    code = "capacity_exceeded"
    status_code = 409
    default_message = "Event is full"


class DuplicateRegistration(RegistrationServiceError):
    code = "duplicate_registration"
    status_code = 409
    default_message = "Already registered"


class StorageFailure(RegistrationServiceError):
    """The only error kind not attributable to caller input."""

    code = "storage_failure"
    status_code = 503
    default_message = "Storage is temporarily unavailable"


@asynccontextmanager
async def storage_errors(operation: str) -> AsyncIterator[None]:
    """Re-raise any SQLAlchemy error escaping the block as StorageFailure.

    The original exception is logged here and chained, but its text never
    reaches the StorageFailure message.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(
            "storage_failure",
            operation=operation,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        raise StorageFailure() from exc
