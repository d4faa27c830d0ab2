"""Rate limiting data models.

This module contains dataclasses for rate limit state, policies and results.
All instants are epoch milliseconds.
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    retry_after: Optional[int] = None


@dataclass
class RateLimitEntry:
    """Fixed-window state for one identity."""
    count: int
    window_reset_at: int
    blocked: bool = False
    blocked_until: Optional[int] = None

    def block(self, until: int) -> None:
        self.blocked = True
        self.blocked_until = until

    def is_blocked_at(self, now: int) -> bool:
        return self.blocked and self.blocked_until is not None and now < self.blocked_until

    def is_dead_at(self, now: int) -> bool:
        """Whether the sweep may drop this entry."""
        if self.blocked:
            return self.blocked_until is None or now >= self.blocked_until
        return now >= self.window_reset_at


@dataclass(frozen=True)
class RateLimitPolicy:
    """Named limiter configuration.

    ``block_duration_ms=None`` disables the punitive block: over-limit
    requests are denied until the window rolls over.
    """
    max_requests: int
    window_ms: int
    block_duration_ms: Optional[int] = None


RATE_LIMITS: Dict[str, RateLimitPolicy] = {
    # Search API: 30 requests per minute
    "search": RateLimitPolicy(max_requests=30, window_ms=60 * 1000),
    # General API: 100 requests per minute
    "api": RateLimitPolicy(max_requests=100, window_ms=60 * 1000),
    # Strict limit: 10 requests per minute
    "strict": RateLimitPolicy(max_requests=10, window_ms=60 * 1000),
}
