"""
Public routes: locally stored objects and shortlink redirects.

These routes are unauthenticated and registered last so the catch-all
short code path never shadows API or docs routes.
"""

import logging
import mimetypes
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, RedirectResponse

from priory.config import Settings
from priory.dependencies import (
    get_click_records,
    get_settings,
    get_shortlink_records,
    get_storage,
)
from priory.routes.shortlinks import find_by_code, verify_password
from priory.services.rate_limiter import get_client_ip
from priory.services.record_store import JsonRecordStore, generate_id

logger = logging.getLogger(__name__)

router = APIRouter()

NOT_FOUND_PAGE = "/not-found-shortlink"


def _redirect_page(status_code: int, title: str) -> HTMLResponse:
    """Small HTML page that forwards the browser to the not-found page."""
    html = f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{status_code} - {title}</title>
  <meta name="viewport" content="width=device-width, initial-scale=1">
</head>
<body>
  <script>window.location.href = '{NOT_FOUND_PAGE}';</script>
  <noscript>
    <meta http-equiv="refresh" content="0; url={NOT_FOUND_PAGE}">
  </noscript>
</body>
</html>"""
    return HTMLResponse(content=html, status_code=status_code)


def _is_expired(expires_at) -> bool:
    if not expires_at:
        return False
    return datetime.now(timezone.utc) > datetime.fromisoformat(expires_at)


@router.get("/files/uploads/{key:path}", include_in_schema=False)
async def serve_upload(
    request: Request,
    key: str,
    settings: Settings = Depends(get_settings),
):
    """Serve a locally stored object with long-lived caching."""
    if settings.STORAGE_TYPE != "local":
        return JSONResponse(status_code=404, content={"error": "Not found"})

    storage = get_storage(request)

    try:
        path = storage.resolve_path(key)
    except ValueError:
        logger.warning(f"Rejected object path outside storage root: {key}")
        return JSONResponse(status_code=403, content={"error": "Forbidden"})

    if not path.is_file():
        return JSONResponse(status_code=404, content={"error": "File not found"})

    media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return FileResponse(
        path=str(path),
        media_type=media_type,
        headers={
            "Cache-Control": "public, max-age=31536000, immutable",
            "Content-Disposition": f'inline; filename="{path.name}"',
        },
    )


@router.get("/{code}", include_in_schema=False)
async def follow_shortlink(
    request: Request,
    code: str,
    records: JsonRecordStore = Depends(get_shortlink_records),
    clicks: JsonRecordStore = Depends(get_click_records),
):
    """
    Resolve a short code and redirect to its target.

    Responses:
    - 404 HTML: unknown code
    - 410 HTML: disabled or expired
    - redirect to /protected/{code}: password missing or wrong
    - 302: click recorded, redirect to original URL
    - 500 HTML: unexpected failure
    """
    try:
        link = find_by_code(records, code)

        if link is None:
            return _redirect_page(404, "Shortlink Not Found")

        if not link.get("isActive", True):
            return _redirect_page(410, "Shortlink Disabled")

        if _is_expired(link.get("expiresAt")):
            return _redirect_page(410, "Shortlink Expired")

        if link.get("passwordHash"):
            password = request.query_params.get("password")
            if not password or not verify_password(password, link["passwordHash"]):
                return RedirectResponse(url=f"/protected/{code}", status_code=307)

        now = datetime.now(timezone.utc).isoformat()
        clicks.insert(
            generate_id(),
            {
                "shortlinkId": link["id"],
                "ipAddress": get_client_ip(request),
                "userAgent": request.headers.get("user-agent", "unknown"),
                "referer": request.headers.get("referer"),
                "clickedAt": now,
            },
        )
        records.update(link["id"], clickCount=link.get("clickCount", 0) + 1, updatedAt=now)

        return RedirectResponse(url=link["originalUrl"], status_code=302)

    except Exception:
        logger.exception(f"Error handling redirect for {code}")
        return _redirect_page(500, "Server Error")
