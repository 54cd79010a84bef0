"""
Provider factory for storage backend selection.

Returns the StorageProvider matching STORAGE_TYPE.
"""

import logging

from priory.config import Settings
from priory.middleware.error_handler import StorageUnavailableError

from .local_storage_provider import LocalStorageProvider
from .storage_provider import StorageProvider

logger = logging.getLogger(__name__)


def create_storage_provider(settings: Settings) -> StorageProvider:
    """
    Build the configured storage provider.

    Returns:
        StorageProvider: LocalStorageProvider if STORAGE_TYPE=local

    Raises:
        StorageUnavailableError: For any other backend; remote object stores
            are provisioned outside this service
    """
    if settings.STORAGE_TYPE == "local":
        logger.info(f"Initializing LocalStorageProvider at {settings.STORAGE_PATH}")
        return LocalStorageProvider(
            base_path=f"{settings.STORAGE_PATH}/objects",
            public_url_path=settings.UPLOADS_URL_PATH,
        )

    raise StorageUnavailableError(settings.STORAGE_TYPE)
