"""FastAPI middleware for request/response processing."""

from .error_handler import (
    ErrorHandlerMiddleware,
    PrioryError,
    RecordNotFoundError,
    ShortCodeConflictError,
    StorageUnavailableError,
    StorageWriteError,
)
from .request_size import RequestSizeLimitMiddleware, check_request_size

__all__ = [
    "ErrorHandlerMiddleware",
    "PrioryError",
    "RecordNotFoundError",
    "ShortCodeConflictError",
    "StorageUnavailableError",
    "StorageWriteError",
    "RequestSizeLimitMiddleware",
    "check_request_size",
]
