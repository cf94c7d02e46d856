"""
Application error taxonomy and the handlers that render it as JSON.

Services raise AppError subclasses; the handlers registered in main.py turn
them into `{"success": false, "message": ...}` responses. Unexpected errors
are rendered as 500 with a production-safe message.
"""

import traceback
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from booking_api.core.config import get_settings
from booking_api.core.logging import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Something went wrong"
    headers: Optional[dict[str, str]] = None

    def __init__(self, message: Optional[str] = None, *, errors: Optional[list[dict]] = None):
        self.message = message or self.message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed or out-of-range input, rejected before touching storage."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Validation failed"


class InsufficientInventoryError(AppError):
    """The conditional seat decrement matched no row."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Not enough seats available"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Resource not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    message = "Conflict"


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Not authenticated"
    headers = {"WWW-Authenticate": "Bearer"}


class PermissionDeniedError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Access denied"


class RateLimitedError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "Too many requests, please try again later"

    def __init__(self, message: Optional[str] = None, *, retry_after: int):
        super().__init__(message)
        self.headers = {"Retry-After": str(retry_after)}


class StorageFailureError(AppError):
    """A write failed mid-transaction; the transaction was rolled back."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Could not complete the request, please try again"


def _error_body(message: str, errors: Optional[list[dict]] = None, **extra: Any) -> dict:
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    body.update(extra)
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("app_error", error=exc.message, error_type=type(exc).__name__)
    else:
        logger.info("app_error", error=exc.message, status_code=exc.status_code)

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, exc.errors),
        headers=exc.headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    logger.info("request_validation_failed", errors=errors)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("Validation failed", errors),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", error=str(exc))
    if get_settings().is_production:
        body = _error_body("Something went wrong")
    else:
        body = _error_body(
            str(exc) or type(exc).__name__,
            stack=traceback.format_exception(type(exc), exc, exc.__traceback__),
        )
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


EXCEPTION_HANDLERS = {
    AppError: app_error_handler,
    RequestValidationError: request_validation_handler,
    StarletteHTTPException: http_exception_handler,
    Exception: unhandled_exception_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
