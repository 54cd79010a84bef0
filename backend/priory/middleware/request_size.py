"""
Request Size Limit Middleware

Rejects oversized requests from their Content-Length header before the body
is read. Limits differ for JSON, multipart and other bodies.
"""

import logging
from typing import Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


def check_request_size(
    content_length: Optional[str],
    content_type: str,
    max_body_size: int,
    max_json_size: int,
    max_file_size: int,
) -> Tuple[bool, Optional[str]]:
    """
    Decide whether a declared body size is acceptable.

    A missing or unparsable Content-Length is allowed; the upload route still
    enforces the real size while streaming.

    Returns:
        tuple: (allowed, error message or None)
    """
    if not content_length:
        return True, None

    try:
        size = int(content_length)
    except ValueError:
        return True, None

    if "application/json" in content_type:
        limit, label = max_json_size, "JSON body"
    elif "multipart/form-data" in content_type:
        limit, label = max_file_size, "File upload"
    else:
        limit, label = max_body_size, "Request body"

    if size > limit:
        return False, f"{label} exceeds maximum size of {limit} bytes"
    return True, None


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Returns 413 for requests whose declared size is over the configured limit."""

    def __init__(self, app, max_body_size: int, max_json_size: int, max_file_size: int):
        super().__init__(app)
        self.max_body_size = max_body_size
        self.max_json_size = max_json_size
        self.max_file_size = max_file_size

    async def dispatch(self, request: Request, call_next):
        allowed, error = check_request_size(
            request.headers.get("content-length"),
            request.headers.get("content-type", ""),
            self.max_body_size,
            self.max_json_size,
            self.max_file_size,
        )
        if not allowed:
            logger.warning(f"Request rejected for {request.url.path}: {error}")
            return JSONResponse(status_code=413, content={"error": error})

        return await call_next(request)
