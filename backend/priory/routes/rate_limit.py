"""
Rate Limit Status Route

Lets a client inspect its remaining budget without spending it.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from priory.dependencies import get_rate_limit_store
from priory.models import RateLimitStatusResponse
from priory.services.rate_limiter import RATE_LIMIT_CONFIGS, RateLimitStore, rate_limit_key

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/rate-limit/{scope}",
    response_model=RateLimitStatusResponse,
    summary="Rate Limit Status",
    description="Read-only usage for the caller under a named budget. Does not consume quota.",
    responses={404: {"description": "Unknown rate limit scope"}},
)
async def rate_limit_status(
    request: Request,
    scope: str,
    store: RateLimitStore = Depends(get_rate_limit_store),
) -> RateLimitStatusResponse:
    config = RATE_LIMIT_CONFIGS.get(scope)
    if config is None:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown rate limit scope '{scope}'. Valid scopes: {', '.join(RATE_LIMIT_CONFIGS)}",
        )

    status = store.status(rate_limit_key(request, config), config)
    return RateLimitStatusResponse(
        scope=scope,
        requests=status.requests,
        maxRequests=status.max_requests,
        windowMs=config.window_ms,
        isBlocked=status.is_blocked,
        blockedUntil=status.blocked_until,
    )
