"""Middleware package for folio."""

from folio.app.middleware.rate_limit import RateLimitMiddleware
from folio.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "RateLimitMiddleware",
    "RequestIdMiddleware",
    "get_request_id",
]
