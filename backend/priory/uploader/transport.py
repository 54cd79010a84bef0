"""
Upload transports.

A transport performs a single transfer attempt and reports byte progress.
Retries, timeouts and cancellation belong to the coordinator.
"""

import io
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

import httpx

from .models import FileHandle

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class UploadError(Exception):
    """
    A failed transfer attempt.

    Args:
        message: Human-readable reason shown next to the file
        status_code: HTTP status, or None for network-level failures
        retry_after: Server-requested wait in seconds (429 only)
        retryable: Whether another attempt may succeed; derived from
            status_code when not given
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        retryable: Optional[bool] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.retry_after = retry_after
        if retryable is None:
            retryable = status_code is None or status_code in (408, 429) or status_code >= 500
        self.retryable = retryable
        super().__init__(message)

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class UploadTransport(ABC):
    """Interface for sending one file to the server."""

    @abstractmethod
    async def send(self, file: FileHandle, on_progress: ProgressCallback) -> dict:
        """
        Upload file once.

        Args:
            file: Payload to send
            on_progress: Called with (bytes_sent, total_bytes) as the body streams

        Returns:
            dict: Parsed success response (id, filename, mimeType, size, url, ...)

        Raises:
            UploadError: On any failed attempt
        """
        pass


class ProgressReader(io.BytesIO):
    """BytesIO that reports how far it has been read."""

    def __init__(self, content: bytes, on_progress: ProgressCallback):
        super().__init__(content)
        self.total = len(content)
        self.on_progress = on_progress

    def read(self, size: Optional[int] = -1) -> bytes:
        chunk = super().read(size)
        if chunk:
            self.on_progress(self.tell(), self.total)
        return chunk


def _parse_retry_after(response: httpx.Response, body: Optional[dict]) -> Optional[float]:
    header = response.headers.get("Retry-After")
    if header:
        try:
            return float(header)
        except ValueError:
            logger.debug(f"Ignoring non-numeric Retry-After header: {header}")
    if body and isinstance(body.get("retryAfter"), (int, float)):
        return float(body["retryAfter"])
    return None


def _json_or_none(response: httpx.Response) -> Optional[dict]:
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


class HttpxUploadTransport(UploadTransport):
    """Posts files as multipart/form-data to the files API using httpx."""

    def __init__(
        self,
        base_url: str,
        endpoint: str = "/api/files",
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers or {},
            timeout=None,  # the coordinator enforces the per-attempt timeout
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpxUploadTransport":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def send(self, file: FileHandle, on_progress: ProgressCallback) -> dict:
        reader = ProgressReader(file.content, on_progress)

        try:
            response = await self._client.post(
                self.endpoint,
                files={"file": (file.name, reader, file.mime_type)},
            )
        except httpx.TimeoutException as e:
            raise UploadError(f"Upload timed out: {e}") from e
        except httpx.TransportError as e:
            raise UploadError(f"Network error: {e}") from e

        body = _json_or_none(response)

        if response.is_success:
            if body is None:
                raise UploadError("Invalid response", status_code=response.status_code, retryable=True)
            return body

        if response.status_code == 429:
            retry_after = _parse_retry_after(response, body)
            logger.warning(f"Upload of {file.name} rate limited, retry after {retry_after}s")
            raise UploadError("Rate limit exceeded", status_code=429, retry_after=retry_after)

        message = "Upload failed"
        if body:
            detail = body.get("error") or body.get("detail")
            if isinstance(detail, str):
                message = detail
        raise UploadError(message, status_code=response.status_code)
