"""Rate limiting using SlowAPI."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from extracto.config import settings

# Keyed by client IP; the service has no user accounts
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.rate_limit_storage_uri,
    default_limits=[f"{settings.rate_limit_general_per_minute}/minute"],
    headers_enabled=True,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_extract():
    """Decorator for the extraction endpoint, which spends OCR quota."""
    return limiter.limit(f"{settings.rate_limit_extract_per_minute}/minute")
