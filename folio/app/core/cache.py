"""In-memory caches for folio.

``TTLCache`` memoizes server-side results (search responses) for a bounded
duration, evicting lazily on read and eagerly from a background sweep.
``BoundedQueryCache`` is the fixed-capacity FIFO cache used by
``folio.client.SearchClient``.

Values are stored by reference: no serialization happens, so a cached
object comes back as the very same object.
"""

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Optional

from folio.app.core.logging import get_logger
from folio.app.core.sweeper import PeriodicSweeper
from folio.app.core.utils import Clock, now_ms, require_positive_int

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """Cached value with its expiry instant (epoch ms)."""

    value: Any
    expires_at: int

    def is_expired(self, now: int) -> bool:
        """Check if the entry has expired at ``now``."""
        return now > self.expires_at


class TTLCache:
    """In-memory cache with per-entry TTL and a periodic sweep.

    The sweep thread starts on the first ``set``, stops itself once the
    cache is empty, and is restarted by the next ``set``. Call
    ``stop_sweeper()`` on shutdown.

    Example:
        >>> cache = TTLCache(default_ttl_ms=5 * 60 * 1000)
        >>> cache.set("search:all:python", {"articles": [], "projects": []})
        >>> cache.get("search:all:python")
        {'articles': [], 'projects': []}
    """

    def __init__(
        self,
        default_ttl_ms: int,
        sweep_interval_ms: int,
        clock: Clock = now_ms,
        name: str = "ttl-cache",
    ) -> None:
        """Initialize the cache.

        Args:
            default_ttl_ms: TTL applied when ``set`` is called without one.
            sweep_interval_ms: Interval between background sweeps.
            clock: Callable returning the current epoch milliseconds.
            name: Label used in logs and thread names.

        Raises:
            ValueError: If a duration is not a positive integer.
        """
        self._default_ttl_ms = require_positive_int("default_ttl_ms", default_ttl_ms)
        self._sweep_interval_ms = require_positive_int("sweep_interval_ms", sweep_interval_ms)
        self._clock = clock
        self._name = name
        self._data: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._sweeper = PeriodicSweeper(self._sweep_interval_ms, self._sweep_tick, name=name)

    @property
    def default_ttl_ms(self) -> int:
        return self._default_ttl_ms

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper.is_running

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for ``key``, evicting it if expired.

        Must be called with ``self._lock`` held.
        """
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._data[key]
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve a value from the cache.

        Returns:
            The cached value, or ``default`` if missing or expired.
        """
        with self._lock:
            entry = self._lookup(key)
            return default if entry is None else entry.value

    def set(self, key: str, value: Any, ttl_ms: Optional[int] = None) -> None:
        """Store a value in the cache.

        Args:
            key: The cache key.
            value: Any object; stored by reference.
            ttl_ms: Time-to-live in milliseconds, ``default_ttl_ms`` if None.

        Raises:
            ValueError: If ``ttl_ms`` is given and not a positive integer
        """
        ttl = self._default_ttl_ms if ttl_ms is None else require_positive_int("ttl_ms", ttl_ms)
        with self._lock:
            self._data[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
            self._sweeper.start()

    def has(self, key: str) -> bool:
        """Check if a key exists and is not expired.

        A stored ``None`` counts as present.
        """
        with self._lock:
            return self._lookup(key) is not None

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def _sweep_locked(self) -> int:
        now = self._clock()
        expired_keys = [key for key, entry in self._data.items() if entry.expires_at < now]
        for key in expired_keys:
            del self._data[key]
        return len(expired_keys)

    def sweep(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            return self._sweep_locked()

    def _sweep_tick(self) -> bool:
        with self._lock:
            removed = self._sweep_locked()
            if removed:
                logger.debug(f"{self._name}: swept {removed} expired entries")
            if not self._data:
                self._sweeper.release()
                return False
            return True

    def stop_sweeper(self) -> None:
        """Stop the background sweep, e.g. on shutdown or between tests."""
        self._sweeper.stop()

    def get_stats(self) -> Dict[str, Any]:
        """Summarize cache contents and configuration."""
        with self._lock:
            now = self._clock()
            expired = sum(1 for entry in self._data.values() if entry.is_expired(now))
            total = len(self._data)
        return {
            "total_entries": total,
            "valid_entries": total - expired,
            "expired_entries": expired,
            "config": {
                "ttl_minutes": self._default_ttl_ms / (60 * 1000),
                "cleanup_interval_minutes": self._sweep_interval_ms / (60 * 1000),
            },
        }


class BoundedQueryCache:
    """Fixed-capacity FIFO cache keyed by normalized query string.

    Once more than ``capacity`` keys are stored the oldest inserted key is
    dropped. Reads never reorder entries and overwriting a key keeps its
    original position.
    """

    DEFAULT_CAPACITY = 50

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._capacity = require_positive_int("capacity", capacity)
        self._data: "OrderedDict[Hashable, Any]" = OrderedDict()

    @staticmethod
    def normalize(query: str) -> str:
        return query.strip().lower()

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, query: str, default: Any = None) -> Any:
        return self._data.get(self.normalize(query), default)

    def set(self, query: str, value: Any) -> None:
        self._data[self.normalize(query)] = value
        while len(self._data) > self._capacity:
            self._data.popitem(last=False)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list:
        return list(self._data)

    def __contains__(self, query: str) -> bool:
        return self.normalize(query) in self._data

    def __len__(self) -> int:
        return len(self._data)


def generate_search_cache_key(query: str, type: Optional[str] = None) -> str:
    """Build the normalized cache key for a search query.

    Examples:
        >>> generate_search_cache_key("  Django ")
        'search:all:django'
        >>> generate_search_cache_key("Django", "articles")
        'search:articles:django'
    """
    normalized_query = query.strip().lower()
    return f"search:{type or 'all'}:{normalized_query}"


# Process-wide search cache, created on first use
_search_cache: Optional[TTLCache] = None


def get_search_cache() -> TTLCache:
    """Get or create the process-wide search result cache from settings."""
    global _search_cache

    if _search_cache is None:
        from folio.app.core.config import settings

        _search_cache = TTLCache(
            default_ttl_ms=settings.cache_ttl_ms,
            sweep_interval_ms=settings.cache_cleanup_interval_ms,
            name="search-cache",
        )
    return _search_cache


def reset_search_cache() -> None:
    """Stop and drop the process-wide search cache.

    This is primarily useful for testing and shutdown.
    """
    global _search_cache

    if _search_cache is not None:
        _search_cache.stop_sweeper()
    _search_cache = None
