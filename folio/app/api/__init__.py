"""API endpoints package for folio."""

from folio.app.api.search import router as search_router

__all__ = [
    "search_router",
]
