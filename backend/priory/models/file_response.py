"""
File Response Pydantic Models

Defines the response structures for stored files.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class FileResponse(BaseModel):
    """
    A stored file as returned by the files API.

    Returned by POST /api/files after a successful upload and by the
    listing and lookup endpoints.
    """

    id: str = Field(..., description="Short opaque file identifier")
    filename: str = Field(..., description="Sanitized filename used for storage")
    originalFilename: str = Field(..., description="Filename as uploaded by the client")
    mimeType: str = Field(..., description="MIME type declared at upload")
    size: int = Field(..., description="File size in bytes")
    width: Optional[int] = Field(None, description="Pixel width for raster images")
    height: Optional[int] = Field(None, description="Pixel height for raster images")
    url: str = Field(..., description="Publicly resolvable URL of the stored object")
    createdAt: str = Field(..., description="ISO 8601 upload timestamp")

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "V1StGXR8",
                "filename": "holiday_photo.png",
                "originalFilename": "holiday photo.png",
                "mimeType": "image/png",
                "size": 482133,
                "width": 1920,
                "height": 1080,
                "url": "/files/uploads/V1StGXR8/holiday_photo.png",
                "createdAt": "2025-01-01T12:00:00+00:00",
            }
        }
    }


class FileListResponse(BaseModel):
    """Paginated file listing."""

    files: List[FileResponse]
    page: int = Field(..., description="1-based page number")
    limit: int = Field(..., description="Page size")
    hasMore: bool = Field(..., description="True when another page may follow")
