"""Rate limiting middleware for folio.

This module provides the fixed-window limiter, the helpers that map its
decisions onto HTTP headers, and a middleware applying a policy to every
``/api/`` request.
"""

from typing import Dict, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from folio.app.core.config import settings
from folio.app.core.logging import get_log_context, get_logger
from folio.app.core.utils import ms_to_iso

# Re-export models
from folio.app.middleware.rate_limit.models import (
    RATE_LIMITS,
    RateLimitEntry,
    RateLimitPolicy,
    RateLimitResult,
)
from folio.app.middleware.rate_limit.limiter import RateLimiter
from folio.app.middleware.rate_limit.identity import get_client_ip, user_agent_identity

logger = get_logger(__name__)

__all__ = [
    # Models
    "RATE_LIMITS",
    "RateLimitEntry",
    "RateLimitPolicy",
    "RateLimitResult",
    # Limiter
    "RateLimiter",
    "get_search_rate_limiter",
    "reset_search_rate_limiter",
    # HTTP mapping
    "get_client_ip",
    "user_agent_identity",
    "create_rate_limit_headers",
    "RateLimitMiddleware",
]

RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."


def create_rate_limit_headers(result: RateLimitResult, iso_reset: bool = False) -> Dict[str, str]:
    """Create rate limit response headers.

    Args:
        result: Rate limit decision
        iso_reset: Render ``X-RateLimit-Reset`` as ISO-8601 instead of epoch ms

    Returns:
        Header mapping; ``Retry-After`` is only present on denials
    """
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": ms_to_iso(result.reset_time) if iso_reset else str(result.reset_time),
    }
    if result.retry_after is not None:
        headers["Retry-After"] = str(result.retry_after)
    return headers


# Process-wide limiter for the search endpoint, created on first use
_search_rate_limiter: Optional[RateLimiter] = None


def get_search_rate_limiter() -> RateLimiter:
    """Get or create the blocking limiter used by the search endpoint."""
    global _search_rate_limiter

    if _search_rate_limiter is None:
        _search_rate_limiter = RateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_ms=settings.rate_limit_window_ms,
            block_duration_ms=settings.rate_limit_block_duration_ms,
            sweep_interval_ms=settings.rate_limit_cleanup_interval_ms,
            name="search-limiter",
        )
    return _search_rate_limiter


def reset_search_rate_limiter() -> None:
    """Stop and drop the process-wide search limiter.

    This is primarily useful for testing and shutdown.
    """
    global _search_rate_limiter

    if _search_rate_limiter is not None:
        _search_rate_limiter.stop_sweeper()
    _search_rate_limiter = None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce a rate limit policy on matching paths.

    Requests are keyed by client IP (see ``get_client_ip``). Denied
    requests get a JSON 429; allowed ones carry the rate limit headers.
    """

    def __init__(
        self,
        app,
        policy: Optional[RateLimitPolicy] = None,
        path_prefix: str = "/api/",
        limiter: Optional[RateLimiter] = None,
    ):
        super().__init__(app)
        self.path_prefix = path_prefix
        if limiter is None:
            policy = policy or RateLimitPolicy(
                max_requests=settings.api_rate_limit_max_requests,
                window_ms=settings.api_rate_limit_window_ms,
            )
            limiter = RateLimiter.from_policy(policy, name="api-limiter")
        self.limiter = limiter

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        key = get_client_ip(request, development=settings.is_development)
        result = self.limiter.check(key)
        headers = create_rate_limit_headers(result)

        if not result.allowed:
            logger.info(
                "Rate limit exceeded",
                extra=get_log_context(client_key=key, path=request.url.path),
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": RATE_LIMIT_MESSAGE,
                    "retryAfter": result.retry_after,
                },
                headers=headers,
            )

        response = await call_next(request)
        # A route applying a stricter limiter has already set its own headers
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response
