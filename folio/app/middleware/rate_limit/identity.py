"""Client identity extraction for rate limiting."""

from typing import Optional

from starlette.requests import Request

from folio.app.core.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


def _js_string_hash(value: str) -> int:
    """31-multiplier string hash folded to a signed 32-bit integer."""
    h = 0
    for char in value:
        h = ((h << 5) - h + ord(char)) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def user_agent_identity(user_agent: str) -> str:
    """Derive a stable pseudo-address from a User-Agent string.

    Gives each browser its own rate limit bucket when no proxy header is
    available during local development.
    """
    h = _js_string_hash(user_agent)
    return f"dev-{abs(h) % 255}.{abs(h >> 8) % 255}.{abs(h >> 16) % 255}.1"


def get_client_ip(request: Request, development: bool = False) -> str:
    """Get the rate limit identity for a request.

    Lookup order: first ``X-Forwarded-For`` hop, ``X-Real-IP``,
    ``CF-Connecting-IP``, a User-Agent-derived key in development, the socket
    peer address, then ``"unknown"``.

    Args:
        request: Incoming request
        development: Whether to fall back to User-Agent-derived keys

    Returns:
        Identity string for ``RateLimiter.check``
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    for header in ("x-real-ip", "cf-connecting-ip"):
        value: Optional[str] = request.headers.get(header)
        if value and value.strip():
            return value.strip()

    if development:
        return user_agent_identity(request.headers.get("user-agent") or "unknown-browser")

    if request.client and request.client.host:
        return request.client.host

    logger.warning("Unable to determine client IP, using fallback")
    return UNKNOWN_CLIENT
