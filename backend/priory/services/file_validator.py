"""
File Validation Service

Validates MIME types and filenames for uploads, and probes image dimensions.
"""

import io
import logging
import re
from typing import Dict, Optional, Tuple

from fastapi import HTTPException, UploadFile, status
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES: Dict[str, Tuple[str, ...]] = {
    "image": (
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/svg+xml",
    ),
    "video": ("video/mp4", "video/webm", "video/ogg", "video/avi", "video/mov"),
    "audio": ("audio/mp3", "audio/wav", "audio/ogg", "audio/m4a", "audio/flac"),
    "application": (
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "text/plain",
    ),
    "archive": (
        "application/zip",
        "application/x-rar-compressed",
        "application/x-7z-compressed",
        "application/gzip",
        "application/x-tar",
    ),
}

READ_CHUNK_SIZE = 1024 * 1024

ALL_ALLOWED_MIME_TYPES = frozenset(
    mime for group in ALLOWED_MIME_TYPES.values() for mime in group
)


def is_allowed_mime_type(mime_type: Optional[str]) -> bool:
    return mime_type in ALL_ALLOWED_MIME_TYPES


def get_file_category(mime_type: str) -> str:
    for category, types in ALLOWED_MIME_TYPES.items():
        if mime_type in types:
            return category
    return "unknown"


def sanitize_filename(filename: str) -> str:
    """
    Strip everything but letters, digits, dashes, underscores and spaces from
    the stem, and collapse whitespace to underscores. The extension is kept.

    Examples:
        "My Photo (1).JPG" -> "My_Photo_1.JPG"
    """
    stem, dot, extension = filename.rpartition(".")
    if not dot or not stem:
        stem, extension = filename, ""

    sanitized = re.sub(r"[^a-zA-Z0-9\-_\s]", "", stem)
    sanitized = re.sub(r"\s+", "_", sanitized.strip()) or "file"
    extension = re.sub(r"[^a-zA-Z0-9]", "", extension)
    return f"{sanitized}.{extension}" if extension else sanitized


def validate_upload_format(file: UploadFile) -> None:
    """
    Validate an uploaded file before storing it.

    Checks:
    1. A filename was supplied
    2. MIME type is in the allow-list

    Raises:
        HTTPException: 400 if the file is unnamed or its type is not allowed
    """
    if not file.filename:
        logger.warning("Upload rejected: missing filename")
        raise HTTPException(status_code=400, detail="No file provided")

    if not is_allowed_mime_type(file.content_type):
        logger.warning(f"Invalid MIME type: {file.content_type} for file {file.filename}")
        raise HTTPException(status_code=400, detail="File type not allowed")

    logger.info(f"File format validation passed for {file.filename}")


async def measure_upload(file: UploadFile, max_size: int) -> int:
    """
    Count the bytes of an upload in READ_CHUNK_SIZE pieces and rewind it.

    Stops reading as soon as max_size is passed, so oversized bodies are
    never held in memory.

    Raises:
        HTTPException: 413 once the running total exceeds max_size
    """
    total = 0
    while chunk := await file.read(READ_CHUNK_SIZE):
        total += len(chunk)
        if total > max_size:
            logger.warning(f"Upload {file.filename} over limit: >{max_size} bytes")
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="File too large",
            )

    await file.seek(0)
    return total


def probe_image_dimensions(content: bytes, mime_type: str) -> Optional[Tuple[int, int]]:
    """
    Read pixel dimensions from raster image bytes.

    Returns:
        tuple: (width, height), or None for non-images, SVG and unreadable data
    """
    if not mime_type.startswith("image/") or mime_type == "image/svg+xml":
        return None

    try:
        with Image.open(io.BytesIO(content)) as image:
            return image.size
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Could not read image dimensions: {e}")
        return None
