"""Time helpers shared by the rate limiter and caches.

All instants are integer epoch milliseconds. Components take a ``Clock``
so tests can drive time explicitly.
"""

import math
import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def ms_to_iso(instant_ms: int) -> str:
    """Format an epoch-millisecond instant as an ISO-8601 UTC string.

    Examples:
        >>> ms_to_iso(0)
        '1970-01-01T00:00:00.000Z'
    """
    dt = datetime.fromtimestamp(instant_ms / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def seconds_until(instant_ms: int, now: int) -> int:
    """Whole seconds from ``now`` until ``instant_ms``, rounded up, never negative."""
    return max(0, math.ceil((instant_ms - now) / 1000))


def require_positive_int(name: str, value: object) -> int:
    """Validate a construction-time setting.

    Raises:
        ValueError: If ``value`` is not an integer greater than zero.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise ValueError(f"{name} must be positive, got {value}")
    return value
