"""Pydantic models for API request/response schemas."""

from .file_response import FileListResponse, FileResponse
from .rate_limit_response import RateLimitStatusResponse
from .shortlink import (
    Shortlink,
    ShortlinkAnalyticsResponse,
    ShortlinkClick,
    ShortlinkCreateRequest,
    ShortlinkCreateResponse,
    ShortlinkListResponse,
)

__all__ = [
    "FileResponse",
    "FileListResponse",
    "RateLimitStatusResponse",
    "Shortlink",
    "ShortlinkAnalyticsResponse",
    "ShortlinkClick",
    "ShortlinkCreateRequest",
    "ShortlinkCreateResponse",
    "ShortlinkListResponse",
]
