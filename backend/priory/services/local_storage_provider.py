"""
Local filesystem storage provider.

Writes uploaded objects below a base directory and serves them back
through the public uploads route.
"""

import logging
from pathlib import Path

from .storage_provider import StorageProvider

logger = logging.getLogger(__name__)


class LocalStorageProvider(StorageProvider):
    """Stores objects as plain files under base_path."""

    def __init__(self, base_path: str, public_url_path: str = "/files/uploads"):
        """
        Initialize LocalStorageProvider.

        Args:
            base_path: Directory that holds all stored objects
            public_url_path: URL prefix under which objects are served
        """
        self.base_path = Path(base_path).resolve()
        self.public_url_path = public_url_path.rstrip("/")

    @property
    def provider_name(self) -> str:
        return "local"

    def resolve_path(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if path != self.base_path and self.base_path not in path.parents:
            raise ValueError(f"Key escapes storage root: {key}")
        return path

    async def upload_file(self, key: str, data: bytes, mime_type: str) -> None:
        file_path = self.resolve_path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "wb") as f:
            f.write(data)

        # Set file permissions: 644 (rw-r--r--)
        file_path.chmod(0o644)
        logger.info(f"Stored object {key} ({len(data)} bytes, {mime_type})")

    async def delete_file(self, key: str) -> None:
        file_path = self.resolve_path(key)
        try:
            file_path.unlink()
        except FileNotFoundError:
            logger.debug(f"Object already absent: {key}")
            return

        # Remove the per-file directory once it is empty
        parent = file_path.parent
        if parent != self.base_path and not any(parent.iterdir()):
            parent.rmdir()

        logger.info(f"Deleted object {key}")

    def get_file_url(self, key: str) -> str:
        return f"{self.public_url_path}/{key}"
