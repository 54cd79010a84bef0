"""
Centralized error handling middleware for FastAPI.

Provides consistent error responses and logging for all API routes.
"""

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class PrioryError(Exception):
    """Base exception for application errors."""

    def __init__(self, message: str, status_code: int = 500, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class RecordNotFoundError(PrioryError):
    """Raised when a stored record does not exist."""

    def __init__(self, collection: str, record_id: str):
        super().__init__(
            message=f"{collection.rstrip('s').capitalize()} not found",
            status_code=404,
            details={"collection": collection, "id": record_id},
        )


class ShortCodeConflictError(PrioryError):
    """Raised when a requested short code is already taken."""

    def __init__(self, short_code: str):
        super().__init__(
            message="Short code already exists",
            status_code=400,
            details={"shortCode": short_code},
        )


class StorageWriteError(PrioryError):
    """Raised when the storage backend fails to persist an object."""

    def __init__(self, key: str, reason: str):
        super().__init__(
            message="Failed to upload file",
            status_code=500,
            details={"key": key, "reason": reason},
        )


class StorageUnavailableError(PrioryError):
    """Raised when the configured storage backend is not served by this process."""

    def __init__(self, storage_type: str):
        super().__init__(
            message=f"Storage backend '{storage_type}' is not available",
            status_code=503,
            details={"storage_type": storage_type},
        )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware that catches unhandled exceptions and returns consistent error responses.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response

        except PrioryError as e:
            logger.error(
                f"PrioryError: {e.message}",
                extra={"status_code": e.status_code, "details": e.details},
            )
            return JSONResponse(
                status_code=e.status_code,
                content={
                    "error": e.message,
                    "details": e.details,
                },
            )

        except Exception as e:
            # Log full stack trace for unexpected errors
            logger.exception(f"Unhandled exception: {str(e)}")
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "message": str(e) if logger.isEnabledFor(logging.DEBUG) else None,
                },
            )
