"""Core utilities for the folio application."""

from folio.app.core.cache import (
    BoundedQueryCache,
    TTLCache,
    generate_search_cache_key,
    get_search_cache,
    reset_search_cache,
)
from folio.app.core.config import settings
from folio.app.core.logging import get_logger, setup_logging

__all__ = [
    "BoundedQueryCache",
    "TTLCache",
    "generate_search_cache_key",
    "get_search_cache",
    "reset_search_cache",
    "settings",
    "get_logger",
    "setup_logging",
]
