"""
Exception handlers mapping the domain error taxonomy to HTTP responses.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..errors import (
    Conflict, Forbidden, InternalError, NotFound, StorageUnavailable, TimeTrackerError, Unauthorized,
    ValidationError
)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    ValidationError: 422,
    Unauthorized: status.HTTP_401_UNAUTHORIZED,
    Forbidden: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_409_CONFLICT,
    StorageUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

GENERIC_DETAIL = "An internal error occurred"


def status_code_for(exc: TimeTrackerError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in STATUS_CODES:
            return STATUS_CODES[error_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def time_tracker_error_handler(request: Request, exc: TimeTrackerError):
    """Render a domain error as ``{"detail": ...}``."""
    status_code = status_code_for(exc)
    if status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"Internal error on {request.url.path}: {exc.detail}")
        return JSONResponse(status_code=status_code, content={"detail": GENERIC_DETAIL})
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(status_code=status_code, content={"detail": exc.detail}, headers=headers)


async def unhandled_error_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": GENERIC_DETAIL},
    )


def install_error_handlers(app: FastAPI):
    app.add_exception_handler(TimeTrackerError, time_tracker_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
