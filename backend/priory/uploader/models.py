"""
Upload progress models.

A FileHandle is the payload selected by the user; an UploadProgress tracks
one handle through the coordinator's state machine.
"""

import mimetypes
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class UploadStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS = {
    UploadStatus.PENDING: {UploadStatus.UPLOADING, UploadStatus.ERROR, UploadStatus.CANCELLED},
    UploadStatus.UPLOADING: {
        UploadStatus.UPLOADING,
        UploadStatus.COMPLETED,
        UploadStatus.ERROR,
        UploadStatus.CANCELLED,
    },
    UploadStatus.ERROR: {UploadStatus.UPLOADING, UploadStatus.CANCELLED},
    UploadStatus.COMPLETED: set(),
    UploadStatus.CANCELLED: set(),
}


class InvalidTransitionError(Exception):
    """Raised when an upload is moved to a status its current status cannot reach."""

    def __init__(self, current: UploadStatus, target: UploadStatus):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move upload from {current.value} to {target.value}")


@dataclass
class FileHandle:
    """A file selected for upload, held in memory."""

    name: str
    content: bytes
    mime_type: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path, mime_type: Optional[str] = None) -> "FileHandle":
        """Read a file from disk, guessing its MIME type from the extension."""
        path = Path(path)
        guessed = mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(name=path.name, content=path.read_bytes(), mime_type=guessed)


@dataclass
class UploadProgress:
    """
    Progress of one file.

    Attributes:
        file: The payload being uploaded
        progress: Percent of bytes sent in the current attempt (0-100)
        status: Position in the upload state machine
        retry_count: Attempts made so far, excluding rate-limited resends
        error: Human-readable failure reason
        result: Server response for a completed upload
    """

    file: FileHandle
    progress: int = 0
    status: UploadStatus = UploadStatus.PENDING
    retry_count: int = 0
    error: Optional[str] = None
    result: Optional[dict] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (UploadStatus.COMPLETED, UploadStatus.CANCELLED)

    def transition(self, status: UploadStatus) -> None:
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.status, status)
        self.status = status
