"""
Exception taxonomy for the betpool engine and its HTTP mapping.

Services raise these; the handlers registered by add_exception_handlers turn
them into JSON responses with the same shape FastAPI uses for HTTPException.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PoolError(Exception):
    """Base for all engine-level exceptions."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PoolError):
    """Malformed input, e.g. a negative or non-integer predicted score."""
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_ERROR"


class EligibilityError(PoolError):
    """The betting window for a match is closed."""
    http_status = status.HTTP_409_CONFLICT
    error_code = "BETTING_CLOSED"


class NotFoundError(PoolError):
    http_status = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"


class ConflictError(PoolError):
    """Duplicate write races and one-time transitions attempted twice."""
    http_status = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"


class AuthorizationError(PoolError):
    http_status = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN"


async def _handle_pool_error(request: Request, exc: PoolError) -> JSONResponse:
    logger.warning(
        "%s %s -> %s: %s", request.method, request.url.path, exc.error_code, exc.message
    )
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": exc.message, "error": exc.error_code},
    )


def add_exception_handlers(app: FastAPI) -> None:
    """Register the engine exception handlers on the FastAPI application."""
    app.add_exception_handler(PoolError, _handle_pool_error)
