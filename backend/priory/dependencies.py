"""
FastAPI dependencies resolving per-app collaborators from app.state.
"""

from fastapi import Request

from priory.config import Settings
from priory.services.provider_factory import create_storage_provider
from priory.services.rate_limiter import RateLimitStore
from priory.services.record_store import JsonRecordStore
from priory.services.storage_provider import StorageProvider


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> StorageProvider:
    """Return the app's storage provider, creating it on first use."""
    if request.app.state.storage is None:
        request.app.state.storage = create_storage_provider(request.app.state.settings)
    return request.app.state.storage


def get_rate_limit_store(request: Request) -> RateLimitStore:
    return request.app.state.rate_limit_store


def get_file_records(request: Request) -> JsonRecordStore:
    return request.app.state.file_records


def get_shortlink_records(request: Request) -> JsonRecordStore:
    return request.app.state.shortlink_records


def get_click_records(request: Request) -> JsonRecordStore:
    return request.app.state.click_records
