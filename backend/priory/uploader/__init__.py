"""Client-side upload coordination: validation, bounded concurrency and retries."""

from .coordinator import UploadCoordinator
from .models import FileHandle, InvalidTransitionError, UploadProgress, UploadStatus
from .retry import RetryPolicy
from .transport import HttpxUploadTransport, UploadError, UploadTransport

__all__ = [
    "UploadCoordinator",
    "FileHandle",
    "InvalidTransitionError",
    "UploadProgress",
    "UploadStatus",
    "RetryPolicy",
    "HttpxUploadTransport",
    "UploadError",
    "UploadTransport",
]
