"""
Rate limit status response model.
"""

from typing import Optional

from pydantic import BaseModel, Field


class RateLimitStatusResponse(BaseModel):
    """Read-only view of the caller's budget for one named configuration."""

    scope: str = Field(..., description="Named rate limit configuration")
    requests: int = Field(..., description="Requests recorded in the current window")
    maxRequests: int = Field(..., description="Requests allowed per window")
    windowMs: int = Field(..., description="Window length in milliseconds")
    isBlocked: bool = Field(..., description="True while a breach penalty is active")
    blockedUntil: Optional[int] = Field(None, description="Block expiry in epoch milliseconds")

    model_config = {
        "json_schema_extra": {
            "example": {
                "scope": "file_upload",
                "requests": 3,
                "maxRequests": 10,
                "windowMs": 60000,
                "isBlocked": False,
                "blockedUntil": None,
            }
        }
    }
