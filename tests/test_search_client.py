"""Tests for the search API client."""

import httpx
import pytest

from folio.app.core.cache import BoundedQueryCache
from folio.client import (
    InvalidSearchQueryError,
    SearchClient,
    SearchRateLimitedError,
    SearchUnavailableError,
)

RESULTS = {"articles": [{"id": "1", "slug": "django-tips"}], "projects": []}


def _client(handler, cache=None):
    transport = httpx.MockTransport(handler)
    http = httpx.AsyncClient(transport=transport, base_url="http://folio.test")
    return SearchClient(http, cache=cache)


class TestSearchClient:
    @pytest.mark.asyncio
    async def test_returns_results_and_caches(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=RESULTS)

        client = _client(handler)
        first = await client.search("Django")
        second = await client.search("  django ")

        assert first == RESULTS
        assert second is first
        assert len(requests) == 1
        assert requests[0].url.params["q"] == "Django"

    @pytest.mark.asyncio
    async def test_short_queries_skip_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = _client(handler)
        assert await client.search(" a ") == {"articles": [], "projects": []}

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": "Too many requests", "retryAfter": 42})

        client = _client(handler)
        with pytest.raises(SearchRateLimitedError) as exc_info:
            await client.search("django")
        assert exc_info.value.retry_after == 42
        assert "42" in exc_info.value.message
        assert len(client.cache) == 0

    @pytest.mark.asyncio
    async def test_invalid_query(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"details": [{"field": "q", "message": "bad"}]})

        client = _client(handler)
        with pytest.raises(InvalidSearchQueryError) as exc_info:
            await client.search("<script>")
        assert exc_info.value.details == [{"field": "q", "message": "bad"}]

    @pytest.mark.asyncio
    async def test_server_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "Search failed"})

        client = _client(handler)
        with pytest.raises(SearchUnavailableError):
            await client.search("django")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = _client(handler)
        with pytest.raises(SearchUnavailableError):
            await client.search("django")

    @pytest.mark.asyncio
    async def test_cache_is_fifo_bounded(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"articles": [], "projects": [], "q": request.url.params["q"]})

        client = _client(handler, cache=BoundedQueryCache(capacity=2))
        await client.search("first")
        await client.search("second")
        await client.search("first")  # cache hit, does not refresh position
        await client.search("third")

        assert client.cache.keys() == ["second", "third"]
