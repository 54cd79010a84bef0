"""Service layer for business logic and storage integrations."""

from .local_storage_provider import LocalStorageProvider
from .provider_factory import create_storage_provider
from .rate_limiter import (
    RATE_LIMIT_CONFIGS,
    RateLimitConfig,
    RateLimitResult,
    RateLimitStatus,
    RateLimitStore,
    get_client_ip,
    rate_limit_headers,
    rate_limit_key,
    with_rate_limit,
)
from .record_store import JsonRecordStore, generate_id
from .storage_provider import StorageProvider

__all__ = [
    "LocalStorageProvider",
    "create_storage_provider",
    "RATE_LIMIT_CONFIGS",
    "RateLimitConfig",
    "RateLimitResult",
    "RateLimitStatus",
    "RateLimitStore",
    "get_client_ip",
    "rate_limit_headers",
    "rate_limit_key",
    "with_rate_limit",
    "JsonRecordStore",
    "generate_id",
    "StorageProvider",
]
