"""Middleware components for request validation and protection."""

from extracto.middleware.rate_limit import limiter
from extracto.middleware.size_limit import RequestSizeLimitMiddleware

__all__ = [
    "RequestSizeLimitMiddleware",
    "limiter",
]
