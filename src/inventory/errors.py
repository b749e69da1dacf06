from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException

from src.inventory.responses import error_envelope

logger = logging.getLogger("inventory.errors")

GENERIC_DB_MESSAGE = "Database error occurred"
GENERIC_INTERNAL_MESSAGE = "Internal server error"


class InventoryError(Exception):
    """Base class for errors that map onto an HTTP status and a user-facing message."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(InventoryError):
    """Bad filter/sort/page values, malformed tags or request bodies."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(InventoryError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} with id {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(InventoryError):
    """Unique-key collisions and deletes that would orphan dependent rows."""

    status_code = status.HTTP_409_CONFLICT


class InfrastructureError(InventoryError):
    """Database unreachable, timed out or otherwise failing.

    ``retryable`` tells the transport layer whether repeating an idempotent
    request has a chance of succeeding. The message is never shown to clients.
    """

    def __init__(self, message: str, *, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status.HTTP_503_SERVICE_UNAVAILABLE if retryable else status.HTTP_500_INTERNAL_SERVER_ERROR


# PUBLIC_INTERFACE
def classify_db_error(exc: BaseException, action: str) -> InfrastructureError:
    """Wrap a driver/SQLAlchemy failure into an InfrastructureError.

    Connectivity problems and timeouts are retryable; programming errors are not.
    """
    if isinstance(exc, (OperationalError, asyncio.TimeoutError, TimeoutError, OSError)):
        return InfrastructureError(f"{action}: {exc}", retryable=True)
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return InfrastructureError(f"{action}: {exc}", retryable=True)
    return InfrastructureError(f"{action}: {exc}", retryable=False)


def _format_validation_errors(exc: RequestValidationError) -> str:
    messages = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("query", "body", "path")]
        field = ".".join(loc) or "request"
        messages.append(f"{field}: {err.get('msg', 'invalid value')}")
    return "; ".join(messages) or "Invalid request"


async def _inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    if isinstance(exc, InfrastructureError):
        logger.error(
            "Infrastructure failure on %s %s: %s", request.method, request.url.path, exc.message, exc_info=exc
        )
        message = GENERIC_DB_MESSAGE
        headers = {"Retry-After": "1"} if exc.retryable else None
        return JSONResponse(status_code=exc.status_code, content=error_envelope(message), headers=headers)
    return JSONResponse(status_code=exc.status_code, content=error_envelope(exc.message))


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_envelope(_format_validation_errors(exc)),
    )


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(status_code=exc.status_code, content=error_envelope(message), headers=exc.headers)


async def _integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Integrity violation on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=error_envelope("Request conflicts with existing data"),
    )


async def _sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    return await _inventory_error_handler(request, classify_db_error(exc, "Unhandled database error"))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope(GENERIC_INTERNAL_MESSAGE),
    )


# PUBLIC_INTERFACE
def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers so every failure leaves the API as a {success: false, message} envelope."""
    app.add_exception_handler(InventoryError, _inventory_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(IntegrityError, _integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
