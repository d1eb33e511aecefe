"""
Exception handlers mapping the error taxonomy to HTTP responses.

Body shape for every error:
    {"error": {"code": "<stable code>", "message": "<human message>"}}
Validation errors add "details" with the per-field problems.
"""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.exceptions import InvalidInput, RegistrationServiceError
from app.core.logging import get_logger

logger = get_logger(__name__)


def _error_body(code: str, message: str, **extra) -> dict:
    return {"error": {"code": code, "message": message, **extra}}


async def registration_error_handler(request: Request, exc: RegistrationServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.message),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(part) for part in error["loc"][1:]), "message": error["msg"]}
        for error in exc.errors()
    ]
    logger.info("request_validation_failed", errors=len(details))
    return JSONResponse(
        status_code=InvalidInput.status_code,
        content=_error_body(
            InvalidInput.code,
            InvalidInput.default_message,
            details=jsonable_encoder(details),
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RegistrationServiceError, registration_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
