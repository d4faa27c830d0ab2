"""Fixed-window rate limiter with a punitive cooldown.

Each identity gets a counter that resets when its window expires. The
request that pushes the counter past ``max_requests`` is denied and, when a
block duration is configured, the identity is blocked for that long; every
request during the block is denied without touching the counter. Once the
block has elapsed the identity starts over as if it were new.
"""

import threading
from typing import Any, Dict, Optional

from folio.app.core.logging import get_log_context, get_logger
from folio.app.core.sweeper import PeriodicSweeper
from folio.app.core.utils import Clock, now_ms, require_positive_int, seconds_until
from folio.app.middleware.rate_limit.models import (
    RateLimitEntry,
    RateLimitPolicy,
    RateLimitResult,
)

logger = get_logger(__name__)

DEFAULT_SWEEP_INTERVAL_MS = 5 * 60 * 1000


class RateLimiter:
    """In-memory fixed-window rate limiter.

    Suitable for single-instance deployments. All state lives in one dict
    guarded by a lock; a background sweep drops entries whose window or
    block has elapsed. The sweep starts on the first ``check`` and stops
    itself when no entries remain.
    """

    def __init__(
        self,
        max_requests: int,
        window_ms: int,
        block_duration_ms: Optional[int] = None,
        sweep_interval_ms: int = DEFAULT_SWEEP_INTERVAL_MS,
        clock: Clock = now_ms,
        name: str = "rate-limiter",
    ):
        """Initialize rate limiter.

        Args:
            max_requests: Requests allowed per window
            window_ms: Window length in milliseconds
            block_duration_ms: Cooldown applied once the limit is exceeded,
                or None to only deny until the window rolls over
            sweep_interval_ms: Interval between background sweeps
            clock: Callable returning the current epoch milliseconds
            name: Label used in logs and thread names

        Raises:
            ValueError: If any setting is not a positive integer
        """
        self.max_requests = require_positive_int("max_requests", max_requests)
        self.window_ms = require_positive_int("window_ms", window_ms)
        self.block_duration_ms = (
            None if block_duration_ms is None
            else require_positive_int("block_duration_ms", block_duration_ms)
        )
        self._sweep_interval_ms = require_positive_int("sweep_interval_ms", sweep_interval_ms)
        self._clock = clock
        self._name = name
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._sweeper = PeriodicSweeper(self._sweep_interval_ms, self._sweep_tick, name=name)

    @classmethod
    def from_policy(cls, policy: RateLimitPolicy, **kwargs: Any) -> "RateLimiter":
        return cls(
            max_requests=policy.max_requests,
            window_ms=policy.window_ms,
            block_duration_ms=policy.block_duration_ms,
            **kwargs,
        )

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper.is_running

    def _deny(self, reset_time: int, now: int) -> RateLimitResult:
        return RateLimitResult(
            allowed=False,
            limit=self.max_requests,
            remaining=0,
            reset_time=reset_time,
            retry_after=seconds_until(reset_time, now),
        )

    def check(self, identity: str) -> RateLimitResult:
        """Record a request for ``identity`` and decide whether it may proceed.

        Never raises.
        """
        with self._lock:
            now = self._clock()
            entry = self._entries.get(identity)

            if entry is not None and entry.blocked:
                if entry.is_blocked_at(now):
                    return self._deny(entry.blocked_until, now)
                # Block elapsed: forget everything about this identity
                del self._entries[identity]
                entry = None

            if entry is None or now >= entry.window_reset_at:
                entry = RateLimitEntry(count=1, window_reset_at=now + self.window_ms)
                self._entries[identity] = entry
                self._sweeper.start()
                return RateLimitResult(
                    allowed=True,
                    limit=self.max_requests,
                    remaining=self.max_requests - 1,
                    reset_time=entry.window_reset_at,
                )

            entry.count += 1

            if entry.count > self.max_requests:
                if self.block_duration_ms is None:
                    return self._deny(entry.window_reset_at, now)
                entry.block(now + self.block_duration_ms)
                logger.warning(
                    f"{self._name}: blocking client after {entry.count} requests",
                    extra=get_log_context(client_key=identity, blocked_until=entry.blocked_until),
                )
                return self._deny(entry.blocked_until, now)

            return RateLimitResult(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests - entry.count,
                reset_time=entry.window_reset_at,
            )

    def _sweep_locked(self) -> int:
        now = self._clock()
        dead = [key for key, entry in self._entries.items() if entry.is_dead_at(now)]
        for key in dead:
            del self._entries[key]
        return len(dead)

    def sweep(self) -> int:
        """Remove entries whose window or block has elapsed.

        Returns:
            Number of entries removed
        """
        with self._lock:
            return self._sweep_locked()

    def _sweep_tick(self) -> bool:
        with self._lock:
            removed = self._sweep_locked()
            if removed:
                logger.debug(f"{self._name}: swept {removed} stale entries")
            if not self._entries:
                self._sweeper.release()
                return False
            return True

    def stop_sweeper(self) -> None:
        """Stop the background sweep."""
        self._sweeper.stop()

    def reset(self) -> None:
        """Drop all tracked identities."""
        with self._lock:
            self._entries.clear()

    def get_entry(self, identity: str) -> Optional[RateLimitEntry]:
        """Return a copy of the state tracked for ``identity``, if any."""
        with self._lock:
            entry = self._entries.get(identity)
            if entry is None:
                return None
            return RateLimitEntry(
                count=entry.count,
                window_reset_at=entry.window_reset_at,
                blocked=entry.blocked,
                blocked_until=entry.blocked_until,
            )

    def get_stats(self) -> Dict[str, Any]:
        """Summarize tracked identities and configuration."""
        with self._lock:
            total = len(self._entries)
            blocked = sum(1 for entry in self._entries.values() if entry.blocked)
        return {
            "total_keys": total,
            "blocked_keys": blocked,
            "config": {
                "max_requests": self.max_requests,
                "window_seconds": self.window_ms / 1000,
                "block_duration_minutes": (
                    None if self.block_duration_ms is None
                    else self.block_duration_ms / (60 * 1000)
                ),
            },
        }
