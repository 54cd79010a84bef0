"""
StorageProvider abstraction layer for object storage backends.

Defines the interface that upload handlers depend on, allowing the API to
swap between backends via configuration.
"""

from abc import ABC, abstractmethod
from pathlib import Path


class StorageProvider(ABC):
    """
    Abstract base class for storage providers.

    Implementations:
    - LocalStorageProvider: Objects written under a local directory and
      served by this process
    """

    @abstractmethod
    async def upload_file(self, key: str, data: bytes, mime_type: str) -> None:
        """
        Store an object under key.

        Args:
            key: Object key, e.g. "{file_id}/{filename}"
            data: Object bytes
            mime_type: Content type recorded alongside the object

        Raises:
            OSError: If the backend write fails
        """
        pass

    @abstractmethod
    async def delete_file(self, key: str) -> None:
        """
        Delete the object stored under key.

        Deleting a missing object is not an error.
        """
        pass

    @abstractmethod
    def get_file_url(self, key: str) -> str:
        """Return the publicly resolvable URL for key."""
        pass

    @abstractmethod
    def resolve_path(self, key: str) -> Path:
        """
        Map key to a local path for serving.

        Raises:
            ValueError: If key escapes the storage root
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return provider identifier, e.g. "local"."""
        pass
