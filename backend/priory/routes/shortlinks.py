"""
Shortlinks API Routes

Create, list and delete shortlinks, and read their click analytics.
"""

import hashlib
import hmac
import logging
import secrets
from collections import Counter
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request

from priory.config import Settings
from priory.dependencies import get_click_records, get_settings, get_shortlink_records
from priory.middleware.error_handler import RecordNotFoundError, ShortCodeConflictError
from priory.models import (
    Shortlink,
    ShortlinkAnalyticsResponse,
    ShortlinkClick,
    ShortlinkCreateRequest,
    ShortlinkCreateResponse,
    ShortlinkListResponse,
)
from priory.services.rate_limiter import RATE_LIMIT_CONFIGS, with_rate_limit
from priory.services.record_store import JsonRecordStore, generate_id

logger = logging.getLogger(__name__)

router = APIRouter()

RECENT_CLICKS_LIMIT = 20


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """Return "salt$digest" for password using PBKDF2-SHA256."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), 100_000)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    salt, _, _ = password_hash.partition("$")
    return hmac.compare_digest(hash_password(password, salt), password_hash)


def to_public_shortlink(record: dict) -> Shortlink:
    return Shortlink(**record, hasPassword=bool(record.get("passwordHash")))


def find_by_code(records: JsonRecordStore, short_code: str) -> Optional[dict]:
    for record in records.list():
        if record.get("shortCode") == short_code:
            return record
    return None


@router.post(
    "/shortlinks",
    response_model=ShortlinkCreateResponse,
    summary="Create Shortlink",
    responses={
        400: {"description": "Invalid body or short code already exists"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def create_shortlink(
    request: Request,
    body: ShortlinkCreateRequest,
    settings: Settings = Depends(get_settings),
    records: JsonRecordStore = Depends(get_shortlink_records),
):
    """
    Create a shortlink with an optional custom code, password and expiry.

    Raises:
        ShortCodeConflictError: If the requested code is taken
    """
    limited = with_rate_limit(request, RATE_LIMIT_CONFIGS["shortlink_create"])
    if limited:
        return limited

    short_code = body.customCode or generate_id(6)
    if find_by_code(records, short_code) is not None:
        logger.warning(f"Short code already exists: {short_code}")
        raise ShortCodeConflictError(short_code)

    expires_at = None
    if body.expiresAt is not None:
        expires = body.expiresAt
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        expires_at = expires.isoformat()

    now = datetime.now(timezone.utc).isoformat()
    record = records.insert(
        generate_id(),
        {
            "shortCode": short_code,
            "originalUrl": str(body.originalUrl),
            "title": body.title,
            "description": body.description,
            "passwordHash": hash_password(body.password) if body.password else None,
            "expiresAt": expires_at,
            "isActive": True,
            "clickCount": 0,
            "createdAt": now,
            "updatedAt": now,
        },
    )

    logger.info(f"Created shortlink {short_code} -> {record['originalUrl']}")
    return ShortlinkCreateResponse(
        shortlink=to_public_shortlink(record),
        shortUrl=f"{settings.SITE_URL.rstrip('/')}/{short_code}",
    )


@router.get("/shortlinks", response_model=ShortlinkListResponse, summary="List Shortlinks")
async def list_shortlinks(
    request: Request,
    records: JsonRecordStore = Depends(get_shortlink_records),
):
    limited = with_rate_limit(request, RATE_LIMIT_CONFIGS["api"])
    if limited:
        return limited

    return ShortlinkListResponse(
        shortlinks=[to_public_shortlink(r) for r in records.list()]
    )


@router.delete("/shortlinks/{shortlink_id}", summary="Delete Shortlink")
async def delete_shortlink(
    request: Request,
    shortlink_id: str,
    records: JsonRecordStore = Depends(get_shortlink_records),
):
    limited = with_rate_limit(request, RATE_LIMIT_CONFIGS["api"])
    if limited:
        return limited

    if not records.delete(shortlink_id):
        raise RecordNotFoundError("shortlinks", shortlink_id)

    logger.info(f"Deleted shortlink {shortlink_id}")
    return {"success": True}


@router.get(
    "/shortlinks/{shortlink_id}/analytics",
    response_model=ShortlinkAnalyticsResponse,
    summary="Shortlink Analytics",
)
async def shortlink_analytics(
    request: Request,
    shortlink_id: str,
    records: JsonRecordStore = Depends(get_shortlink_records),
    clicks: JsonRecordStore = Depends(get_click_records),
):
    """Total clicks, clicks per day and the most recent clicks."""
    limited = with_rate_limit(request, RATE_LIMIT_CONFIGS["analytics"])
    if limited:
        return limited

    record = records.get(shortlink_id)
    if record is None:
        raise RecordNotFoundError("shortlinks", shortlink_id)

    link_clicks = [
        c for c in clicks.list(sort_key="clickedAt") if c.get("shortlinkId") == shortlink_id
    ]
    by_day = Counter(c["clickedAt"][:10] for c in link_clicks)

    return ShortlinkAnalyticsResponse(
        shortlinkId=shortlink_id,
        totalClicks=record.get("clickCount", 0),
        clicksByDay=dict(sorted(by_day.items())),
        recentClicks=[ShortlinkClick(**c) for c in link_clicks[:RECENT_CLICKS_LIMIT]],
    )
