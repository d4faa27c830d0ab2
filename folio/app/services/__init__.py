"""Services package for folio."""

from folio.app.services.search import (
    InMemorySearchIndex,
    SearchHit,
    SearchResults,
    SearchService,
)

__all__ = [
    "InMemorySearchIndex",
    "SearchHit",
    "SearchResults",
    "SearchService",
]
