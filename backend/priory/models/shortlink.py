"""
Shortlink request/response models.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, HttpUrl, field_validator

SHORT_CODE_PATTERN = r"^[a-zA-Z0-9_-]+$"


class ShortlinkCreateRequest(BaseModel):
    """Body of POST /api/shortlinks. Empty strings are treated as absent."""

    originalUrl: HttpUrl = Field(..., description="Redirect target")
    customCode: Optional[str] = Field(
        None,
        min_length=1,
        max_length=128,
        pattern=SHORT_CODE_PATTERN,
        description="Requested short code; random if omitted",
    )
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    password: Optional[str] = Field(None, min_length=1, max_length=128)
    expiresAt: Optional[datetime] = Field(None, description="Expiry timestamp (ISO 8601)")

    @field_validator(
        "customCode", "title", "description", "password", "expiresAt", mode="before"
    )
    @classmethod
    def empty_string_as_none(cls, value):
        if value == "":
            return None
        return value

    @field_validator("originalUrl", mode="before")
    @classmethod
    def limit_url_length(cls, value):
        if isinstance(value, str) and len(value) > 2048:
            raise ValueError("URL too long")
        return value


class Shortlink(BaseModel):
    """Public view of a shortlink. The password hash is never exposed."""

    id: str
    shortCode: str
    originalUrl: str
    title: Optional[str] = None
    description: Optional[str] = None
    hasPassword: bool = False
    expiresAt: Optional[str] = None
    isActive: bool = True
    clickCount: int = 0
    createdAt: str


class ShortlinkCreateResponse(BaseModel):
    shortlink: Shortlink
    shortUrl: str = Field(..., description="Absolute URL that redirects to originalUrl")


class ShortlinkListResponse(BaseModel):
    shortlinks: List[Shortlink]


class ShortlinkClick(BaseModel):
    ipAddress: str
    userAgent: str
    referer: Optional[str] = None
    clickedAt: str


class ShortlinkAnalyticsResponse(BaseModel):
    shortlinkId: str
    totalClicks: int
    clicksByDay: Dict[str, int] = Field(..., description="Click counts keyed by YYYY-MM-DD")
    recentClicks: List[ShortlinkClick]
