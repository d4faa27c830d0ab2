"""Async client for the folio search endpoint.

Repeated queries are answered from a ``BoundedQueryCache`` holding the
last 50 distinct queries (FIFO), so typing back and forth in a search box
does not hit the server again.
"""

from typing import Any, Dict, Optional

import httpx

from folio.app.core.cache import BoundedQueryCache
from folio.app.core.logging import get_logger

logger = get_logger(__name__)

MIN_QUERY_LENGTH = 2


def empty_results() -> Dict[str, Any]:
    return {"articles": [], "projects": []}


class SearchClientError(Exception):
    """Base class for search client failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SearchRateLimitedError(SearchClientError):
    """The server answered 429."""

    def __init__(self, retry_after: Optional[int]):
        self.retry_after = retry_after
        super().__init__(f"Too many requests. Try again in {retry_after} seconds.")


class InvalidSearchQueryError(SearchClientError):
    """The server rejected the query (400)."""

    def __init__(self, details: Optional[list] = None):
        self.details = details or []
        super().__init__("Invalid search. Please check your input.")


class SearchUnavailableError(SearchClientError):
    """The server failed or could not be reached."""


class SearchClient:
    """Search API client with a bounded FIFO result cache.

    Usage:
        async with httpx.AsyncClient(base_url="https://example.org") as http:
            client = SearchClient(http)
            results = await client.search("django")
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        cache: Optional[BoundedQueryCache] = None,
        path: str = "/api/search",
    ) -> None:
        self._http = http_client
        self._cache = cache if cache is not None else BoundedQueryCache()
        self._path = path

    @property
    def cache(self) -> BoundedQueryCache:
        return self._cache

    async def search(self, query: str) -> Dict[str, Any]:
        """Search articles and projects.

        Returns:
            The decoded response payload; empty results for queries shorter
            than two characters

        Raises:
            SearchRateLimitedError: On HTTP 429
            InvalidSearchQueryError: On HTTP 400
            SearchUnavailableError: On any other failure
        """
        trimmed = query.strip()
        if len(trimmed) < MIN_QUERY_LENGTH:
            return empty_results()

        cached = self._cache.get(trimmed)
        if cached is not None:
            return cached

        try:
            response = await self._http.get(self._path, params={"q": trimmed})
        except httpx.HTTPError as e:
            logger.warning(f"Search request failed: {e}")
            raise SearchUnavailableError(
                "Unable to reach the server. Check your connection."
            ) from e

        if response.status_code == 429:
            raise SearchRateLimitedError(self._json(response).get("retryAfter"))
        if response.status_code == 400:
            raise InvalidSearchQueryError(self._json(response).get("details"))
        if response.is_error:
            raise SearchUnavailableError("An error occurred. Please try again.")

        data = self._json(response)
        self._cache.set(trimmed, data)
        return data

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise SearchUnavailableError("Malformed response from search endpoint") from e
        if not isinstance(data, dict):
            raise SearchUnavailableError("Malformed response from search endpoint")
        return data
