"""Upload size limit middleware."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from extracto.config import settings

logger = logging.getLogger(__name__)

# Only these methods carry a statement upload
UPLOAD_METHODS = frozenset({"POST", "PUT", "PATCH"})


def format_size(num_bytes: int) -> str:
    """Render a byte count for people, e.g. ``20 MB`` or ``1.5 KB``."""
    if num_bytes < 1024:
        return f"{num_bytes} bytes"
    size = float(num_bytes)
    for unit in ("KB", "MB", "GB"):
        size /= 1024
        if size < 1024 or unit == "GB":
            break
    return f"{size:.1f}".rstrip("0").rstrip(".") + f" {unit}"


def declared_size(request: Request) -> int | None:
    """Content-Length of the request, or None when absent or malformed."""
    header = request.headers.get("content-length")
    if not header:
        return None
    try:
        size = int(header)
    except ValueError:
        return None
    return size if size >= 0 else None


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Turn away statement uploads larger than the configured ceiling.

    The declared Content-Length is checked before any of the body is read,
    so a 200-page scan over the limit never reaches the extraction route.
    Requests without a usable Content-Length pass through untouched.
    """

    def __init__(self, app, max_size: int | None = None):
        super().__init__(app)
        self.max_size = max_size or settings.max_upload_size_bytes

    async def dispatch(self, request: Request, call_next):
        if request.method not in UPLOAD_METHODS:
            return await call_next(request)

        size = declared_size(request)
        if size is None or size <= self.max_size:
            return await call_next(request)

        logger.warning(
            "Rejected %s upload to %s: %d bytes, limit %d",
            request.method,
            request.url.path,
            size,
            self.max_size,
        )
        return JSONResponse(
            status_code=413,
            content={
                "detail": (
                    f"The file is {format_size(size)}; statements up to "
                    f"{format_size(self.max_size)} are accepted"
                )
            },
        )
