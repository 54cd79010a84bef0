"""
Rate Limiter Service

In-memory rate limiting with a sliding window log and penalty blocking.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "rate_limit_sweep"


@dataclass(frozen=True)
class RateLimitConfig:
    """Budget for one class of endpoint."""

    window_ms: int
    max_requests: int
    block_duration_ms: Optional[int] = None
    name: str = ""

    @property
    def effective_block_ms(self) -> int:
        return self.block_duration_ms or self.window_ms

    def is_valid(self) -> bool:
        return (
            isinstance(self.window_ms, int)
            and isinstance(self.max_requests, int)
            and self.window_ms > 0
            and self.max_requests > 0
        )


RATE_LIMIT_CONFIGS: Dict[str, RateLimitConfig] = {
    "auth": RateLimitConfig(
        name="auth",
        window_ms=15 * 60 * 1000,
        max_requests=5,
        block_duration_ms=60 * 60 * 1000,
    ),
    "file_upload": RateLimitConfig(
        name="file_upload",
        window_ms=60 * 1000,
        max_requests=10,
        block_duration_ms=5 * 60 * 1000,
    ),
    "api": RateLimitConfig(
        name="api",
        window_ms=60 * 1000,
        max_requests=30,
        block_duration_ms=5 * 60 * 1000,
    ),
    "shortlink_create": RateLimitConfig(
        name="shortlink_create",
        window_ms=60 * 1000,
        max_requests=20,
        block_duration_ms=5 * 60 * 1000,
    ),
    "analytics": RateLimitConfig(
        name="analytics",
        window_ms=60 * 1000,
        max_requests=60,
        block_duration_ms=5 * 60 * 1000,
    ),
    "invite_validation": RateLimitConfig(
        name="invite_validation",
        window_ms=15 * 60 * 1000,
        max_requests=20,
        block_duration_ms=60 * 60 * 1000,
    ),
}


@dataclass
class RateLimitEntry:
    """Per-key state: request timestamps (ms) inside the window and an optional block."""

    requests: List[int] = field(default_factory=list)
    blocked_until: Optional[int] = None
    window_ms: int = 0


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: int
    retry_after: Optional[int] = None


@dataclass
class RateLimitStatus:
    requests: int
    max_requests: int
    is_blocked: bool
    blocked_until: Optional[int] = None


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class RateLimitStore:
    """
    Sliding-window rate limiter with block-on-breach semantics.

    Lifecycle: construct, call check() per request, shutdown() when done.
    start() schedules the periodic sweep on the running event loop.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], int]] = None,
        cleanup_interval_seconds: int = 300,
    ):
        """
        Initialize rate limit store.

        Args:
            clock: Callable returning the current time in epoch milliseconds
            cleanup_interval_seconds: Interval between sweeps once started
        """
        self.clock = clock or _epoch_ms
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self.entries: Dict[str, RateLimitEntry] = {}
        self._scheduler: Optional[AsyncIOScheduler] = None

    def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """
        Check and consume one request for key.

        Uses sliding window algorithm:
        1. Reject while an earlier breach's block is active
        2. Remove old requests outside time window
        3. Block and reject if the window is already full
        4. Record current request timestamp

        Never raises: malformed input is allowed without recording state.
        """
        now = self.clock()

        if not key or not isinstance(config, RateLimitConfig) or not config.is_valid():
            logger.warning(f"Rate limit check skipped for malformed input: key={key!r}")
            remaining = getattr(config, "max_requests", 0)
            return RateLimitResult(
                allowed=True,
                remaining=remaining if isinstance(remaining, int) and remaining > 0 else 0,
                reset_time=now,
            )

        entry = self.entries.get(key)
        if entry is None:
            entry = RateLimitEntry(window_ms=config.window_ms)
            self.entries[key] = entry
        entry.window_ms = config.window_ms

        if entry.blocked_until is not None and entry.blocked_until > now:
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_time=entry.blocked_until,
                retry_after=math.ceil((entry.blocked_until - now) / 1000),
            )

        window_start = now - config.window_ms
        entry.requests = [t for t in entry.requests if t > window_start]

        if len(entry.requests) >= config.max_requests:
            block_ms = config.effective_block_ms
            entry.blocked_until = now + block_ms
            logger.warning(
                f"Rate limit exceeded for {key}: "
                f"{len(entry.requests)} requests in window, blocked for {block_ms}ms"
            )
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_time=entry.blocked_until,
                retry_after=math.ceil(block_ms / 1000),
            )

        entry.requests.append(now)
        return RateLimitResult(
            allowed=True,
            remaining=max(0, config.max_requests - len(entry.requests)),
            reset_time=entry.requests[0] + config.window_ms,
        )

    def status(self, key: str, config: RateLimitConfig) -> RateLimitStatus:
        """Report usage for key without consuming quota or creating state."""
        entry = self.entries.get(key)
        if entry is None:
            return RateLimitStatus(
                requests=0,
                max_requests=config.max_requests,
                is_blocked=False,
            )

        now = self.clock()
        window_start = now - config.window_ms
        recent = sum(1 for t in entry.requests if t > window_start)
        is_blocked = entry.blocked_until is not None and entry.blocked_until > now
        return RateLimitStatus(
            requests=recent,
            max_requests=config.max_requests,
            is_blocked=is_blocked,
            blocked_until=entry.blocked_until,
        )

    def reset(self, key: str) -> None:
        self.entries.pop(key, None)

    def sweep(self, now: Optional[int] = None) -> int:
        """
        Drop expired timestamps and purge idle entries.

        An entry is purged once it holds no requests and has no active block.

        Returns:
            int: Number of entries removed
        """
        now = self.clock() if now is None else now
        purged = 0

        for key in list(self.entries):
            entry = self.entries[key]
            entry.requests = [t for t in entry.requests if now - t < entry.window_ms]

            if not entry.requests and (entry.blocked_until is None or entry.blocked_until <= now):
                del self.entries[key]
                purged += 1

        logger.info(f"Rate limit sweep: {purged} entries purged, {len(self.entries)} remaining")
        return purged

    def start(self) -> None:
        """
        Start the periodic sweep.

        Must be called from a running event loop. Safe to call multiple times.
        """
        if self._scheduler is not None and self._scheduler.running:
            logger.debug("Rate limit sweep already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.sweep,
            "interval",
            seconds=self.cleanup_interval_seconds,
            id=SWEEP_JOB_ID,
            name="Sweep idle rate limit entries",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(f"Rate limit sweep started: every {self.cleanup_interval_seconds}s")

    def shutdown(self) -> None:
        """Stop the periodic sweep. In-memory counters are kept."""
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Rate limit sweep stopped")
        self._scheduler = None

    def scheduler_status(self) -> dict:
        """
        Get current sweep status for health checks.

        Returns:
            dict: Sweep running state, next run and tracked key count
        """
        job = self._scheduler.get_job(SWEEP_JOB_ID) if self._scheduler else None
        return {
            "running": bool(self._scheduler and self._scheduler.running),
            "job_scheduled": job is not None,
            "next_run": str(job.next_run_time) if job else None,
            "interval_seconds": self.cleanup_interval_seconds,
            "tracked_keys": len(self.entries),
        }


def get_client_ip(request: Request) -> str:
    """Resolve the client identity from proxy headers, falling back to the peer address."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


def rate_limit_key(request: Request, config: RateLimitConfig, key_override: Optional[str] = None) -> str:
    """Store key for the caller under config. Named budgets are tracked separately."""
    identity = key_override or get_client_ip(request)
    return f"{config.name}:{identity}" if config.name else identity


def rate_limit_headers(result: RateLimitResult, config: RateLimitConfig) -> Dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(config.max_requests),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(math.ceil(result.reset_time / 1000)),
    }
    if result.retry_after:
        headers["Retry-After"] = str(result.retry_after)
    return headers


def with_rate_limit(
    request: Request,
    config: RateLimitConfig,
    key_override: Optional[str] = None,
    store: Optional[RateLimitStore] = None,
) -> Optional[JSONResponse]:
    """
    Consume one request from the caller's budget.

    Args:
        request: Incoming request, used to resolve the client IP and app store
        config: Budget to check against
        key_override: Identity to use instead of the client IP
        store: Store to use instead of request.app.state.rate_limit_store

    Returns:
        JSONResponse: 429 rejection with rate limit headers, or None to proceed
    """
    store = store or request.app.state.rate_limit_store
    key = rate_limit_key(request, config, key_override)
    result = store.check(key, config)

    if result.allowed:
        return None

    return JSONResponse(
        status_code=429,
        content={"error": "Rate limit exceeded", "retryAfter": result.retry_after},
        headers=rate_limit_headers(result, config),
    )
