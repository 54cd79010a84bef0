"""
Files API Routes

Handles multipart uploads, listing, lookup and deletion of stored files.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile

from priory.config import Settings
from priory.dependencies import get_file_records, get_settings, get_storage
from priory.middleware.error_handler import RecordNotFoundError, StorageWriteError
from priory.models import FileListResponse, FileResponse
from priory.services.file_validator import (
    get_file_category,
    measure_upload,
    probe_image_dimensions,
    sanitize_filename,
    validate_upload_format,
)
from priory.services.rate_limiter import RATE_LIMIT_CONFIGS, with_rate_limit
from priory.services.record_store import JsonRecordStore, generate_id
from priory.services.storage_provider import StorageProvider

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(record: dict, storage: StorageProvider) -> FileResponse:
    return FileResponse(**record, url=storage.get_file_url(record["key"]))


@router.post(
    "/files",
    response_model=FileResponse,
    summary="Upload File",
    description="""
Upload a single file as `multipart/form-data` in the `file` field.

**Constraints:**
- **Max File Size:** `MAX_UPLOAD_SIZE` (100MB by default)
- **Rate Limit:** 10 uploads per minute per client, 5 minute block on breach
- **Allowed Types:** images, video, audio, office documents, plain text, archives

**Response:** The stored file record with its public `url`.
""",
    responses={
        400: {"description": "Missing, empty or disallowed file"},
        413: {"description": "File too large"},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Storage failure"},
    },
)
async def upload_file(
    request: Request,
    file: Optional[UploadFile] = File(None),
    settings: Settings = Depends(get_settings),
    storage: StorageProvider = Depends(get_storage),
    records: JsonRecordStore = Depends(get_file_records),
):
    """
    Validate and store an uploaded file.

    Raises:
        HTTPException: For validation errors and file size limits
        StorageWriteError: If the storage backend fails
    """
    limited = with_rate_limit(request, RATE_LIMIT_CONFIGS["file_upload"])
    if limited:
        return limited

    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")

    validate_upload_format(file)
    file_size = await measure_upload(file, settings.MAX_UPLOAD_SIZE)

    if file_size == 0:
        raise HTTPException(status_code=400, detail="Empty file uploaded")

    file_id = generate_id(8)
    filename = sanitize_filename(file.filename)
    key = f"{file_id}/{filename}"
    content = await file.read()

    logger.info(
        f"Upload started for file {file_id}, filename: {file.filename}, "
        f"category: {get_file_category(file.content_type)}"
    )

    try:
        await storage.upload_file(key, content, file.content_type)
    except OSError as e:
        logger.error(f"Storage error for file {file_id}: {str(e)}")
        raise StorageWriteError(key, str(e))

    dimensions = probe_image_dimensions(content, file.content_type)
    width, height = dimensions if dimensions else (None, None)

    record = records.insert(
        file_id,
        {
            "key": key,
            "filename": filename,
            "originalFilename": file.filename,
            "mimeType": file.content_type,
            "size": file_size,
            "width": width,
            "height": height,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        },
    )

    logger.info(f"Upload successful for file {file_id}")
    return _to_response(record, storage)


@router.get("/files", response_model=FileListResponse, summary="List Files")
async def list_files(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    storage: StorageProvider = Depends(get_storage),
    records: JsonRecordStore = Depends(get_file_records),
):
    """List stored files, newest first."""
    limited = with_rate_limit(request, RATE_LIMIT_CONFIGS["api"])
    if limited:
        return limited

    all_records = records.list()
    offset = (page - 1) * limit
    page_records = all_records[offset:offset + limit]

    return FileListResponse(
        files=[_to_response(r, storage) for r in page_records],
        page=page,
        limit=limit,
        hasMore=offset + limit < len(all_records),
    )


@router.get("/files/{file_id}", response_model=FileResponse, summary="Get File")
async def get_file(
    file_id: str,
    storage: StorageProvider = Depends(get_storage),
    records: JsonRecordStore = Depends(get_file_records),
):
    record = records.get(file_id)
    if record is None:
        raise RecordNotFoundError("files", file_id)
    return _to_response(record, storage)


@router.delete("/files/{file_id}", summary="Delete File")
async def delete_file(
    request: Request,
    file_id: str,
    storage: StorageProvider = Depends(get_storage),
    records: JsonRecordStore = Depends(get_file_records),
):
    """Delete the stored object and its record."""
    limited = with_rate_limit(request, RATE_LIMIT_CONFIGS["api"])
    if limited:
        return limited

    record = records.get(file_id)
    if record is None:
        raise RecordNotFoundError("files", file_id)

    await storage.delete_file(record["key"])
    records.delete(file_id)

    logger.info(f"Deleted file {file_id}")
    return {"success": True}
