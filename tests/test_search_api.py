"""Tests for the /api/search endpoint."""

import pytest
from fastapi.testclient import TestClient

from folio.app.core.cache import TTLCache, get_search_cache
from folio.app.exceptions import InvalidSearchQueryError, SearchBackendError
from folio.app.main import create_app
from folio.app.middleware.rate_limit import RateLimiter, RateLimitPolicy, get_search_rate_limiter
from folio.app.api.search import validate_search_query
from folio.app.services.search import InMemorySearchIndex, SearchHit, SearchResults, SearchService

CLIENT_HEADERS = {"X-Forwarded-For": "203.0.113.7"}


class CountingSearchService(SearchService):
    def __init__(self, inner: SearchService):
        self.inner = inner
        self.calls = 0

    async def search(self, query: str) -> SearchResults:
        self.calls += 1
        return await self.inner.search(query)


class FailingSearchService(SearchService):
    def __init__(self, exc: Exception):
        self.exc = exc

    async def search(self, query: str) -> SearchResults:
        raise self.exc


@pytest.fixture
def index():
    return InMemorySearchIndex(
        articles=[
            SearchHit(id="1", slug="django-tips", title="Django tips", tags=["python"]),
            SearchHit(id="2", slug="rust-intro", title="Intro to Rust", description="Ownership explained"),
        ],
        projects=[
            SearchHit(id="p1", slug="blog-engine", title="Blog engine", tags=["Python", "FastAPI"]),
        ],
    )


@pytest.fixture
def search_limiter(clock):
    limiter = RateLimiter(
        max_requests=3, window_ms=60_000, block_duration_ms=300_000, clock=clock
    )
    yield limiter
    limiter.stop_sweeper()


@pytest.fixture
def search_cache(clock):
    cache = TTLCache(default_ttl_ms=5_000, sweep_interval_ms=60_000, clock=clock)
    yield cache
    cache.stop_sweeper()


def _make_client(service, search_limiter, search_cache, clock):
    app = create_app(
        search_service=service,
        api_policy=RateLimitPolicy(max_requests=1_000, window_ms=60_000),
    )
    app.dependency_overrides[get_search_rate_limiter] = lambda: search_limiter
    app.dependency_overrides[get_search_cache] = lambda: search_cache
    return TestClient(app)


@pytest.fixture
def service(index):
    return CountingSearchService(index)


@pytest.fixture
def client(service, search_limiter, search_cache, clock):
    with _make_client(service, search_limiter, search_cache, clock) as client:
        yield client


class TestSearchEndpoint:
    def test_returns_matches(self, client):
        resp = client.get("/api/search", params={"q": "python"}, headers=CLIENT_HEADERS)
        assert resp.status_code == 200
        data = resp.json()
        assert [a["slug"] for a in data["articles"]] == ["django-tips"]
        assert [p["slug"] for p in data["projects"]] == ["blog-engine"]

    def test_rate_limit_headers(self, client):
        resp = client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS)
        assert resp.headers["X-RateLimit-Limit"] == "3"
        assert resp.headers["X-RateLimit-Remaining"] == "2"
        assert resp.headers["X-RateLimit-Reset"] == "1970-01-01T00:01:00.000Z"
        assert "X-Request-ID" in resp.headers

    def test_cache_miss_then_hit(self, client, service):
        first = client.get("/api/search", params={"q": "Rust"}, headers=CLIENT_HEADERS)
        second = client.get("/api/search", params={"q": "  rust "}, headers=CLIENT_HEADERS)

        assert first.headers["X-Cache"] == "MISS"
        assert second.headers["X-Cache"] == "HIT"
        assert second.json() == first.json()
        assert service.calls == 1

    def test_cache_expires(self, client, service, clock):
        client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS)
        clock.set(5_001)
        resp = client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS)
        assert resp.headers["X-Cache"] == "MISS"
        assert service.calls == 2

    def test_blocks_after_limit(self, client, clock):
        for t in (0, 1, 2):
            clock.set(t)
            assert client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS).status_code == 200

        clock.set(3)
        resp = client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS)
        assert resp.status_code == 429
        assert resp.json()["retryAfter"] == 300
        assert resp.headers["Retry-After"] == "300"
        assert resp.headers["X-RateLimit-Remaining"] == "0"

        clock.set(100)
        assert client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS).status_code == 429

        clock.set(300_100)
        resp = client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS)
        assert resp.status_code == 200
        assert resp.headers["X-RateLimit-Remaining"] == "2"

    def test_clients_limited_independently(self, client):
        for _ in range(4):
            client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS)
        resp = client.get("/api/search", params={"q": "rust"}, headers={"X-Forwarded-For": "198.51.100.1"})
        assert resp.status_code == 200

    @pytest.mark.parametrize("q", [None, "a", " a ", "x" * 101, "<script>", "drop;table"])
    def test_invalid_query(self, client, q):
        params = {} if q is None else {"q": q}
        resp = client.get("/api/search", params=params, headers=CLIENT_HEADERS)
        assert resp.status_code == 400
        data = resp.json()
        assert data["articles"] == []
        assert data["projects"] == []
        assert data["details"]
        assert resp.headers["X-RateLimit-Limit"] == "3"

    def test_invalid_queries_still_count_against_limit(self, client):
        for _ in range(3):
            client.get("/api/search", params={"q": "!"}, headers=CLIENT_HEADERS)
        resp = client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS)
        assert resp.status_code == 429


class TestLayeredLimits:
    def test_search_headers_not_overwritten_by_api_limiter(self, client):
        resp = client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS)
        assert resp.headers["X-RateLimit-Limit"] == "3"
        assert resp.headers["X-RateLimit-Reset"] == "1970-01-01T00:01:00.000Z"

        for _ in range(3):
            resp = client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS)
        assert resp.status_code == 429
        assert resp.headers["X-RateLimit-Limit"] == "3"
        assert resp.headers["X-RateLimit-Remaining"] == "0"
        assert resp.headers["Retry-After"] == "300"

    def test_api_limiter_still_applies(self, service, search_limiter):
        app = create_app(
            search_service=service,
            api_policy=RateLimitPolicy(max_requests=1, window_ms=60_000),
        )
        app.dependency_overrides[get_search_rate_limiter] = lambda: search_limiter
        with TestClient(app) as client:
            assert client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS).status_code == 200
            resp = client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS)

        assert resp.status_code == 429
        assert resp.headers["X-RateLimit-Limit"] == "1"
        assert search_limiter.get_entry("203.0.113.7").count == 1


class TestSearchFailures:
    def test_backend_error(self, search_limiter, search_cache, clock):
        service = FailingSearchService(SearchBackendError("cms down"))
        with _make_client(service, search_limiter, search_cache, clock) as client:
            resp = client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS)
        assert resp.status_code == 500
        assert resp.json() == {"error": "Search failed", "articles": [], "projects": []}
        assert len(search_cache) == 0

    def test_unexpected_error(self, search_limiter, search_cache, clock):
        service = FailingSearchService(RuntimeError("boom"))
        with _make_client(service, search_limiter, search_cache, clock) as client:
            resp = client.get("/api/search", params={"q": "rust"}, headers=CLIENT_HEADERS)
        assert resp.status_code == 500
        assert resp.json()["error"] == "Search failed"


class TestValidateSearchQuery:
    def test_trims(self):
        assert validate_search_query("  café crème ") == "café crème"

    def test_allows_hyphen_and_apostrophe(self):
        assert validate_search_query("l'état-major") == "l'état-major"

    def test_rejects_short(self):
        with pytest.raises(InvalidSearchQueryError) as exc_info:
            validate_search_query(" x ")
        assert exc_info.value.details[0]["field"] == "q"


class TestHealth:
    def test_health_reports_stats(self):
        with TestClient(create_app()) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert "total_entries" in data["components"]["search_cache"]
        assert data["components"]["search_rate_limiter"]["config"]["max_requests"] == 10

    def test_health_uses_injected_components(self, search_limiter, search_cache):
        app = create_app()
        app.dependency_overrides[get_search_rate_limiter] = lambda: search_limiter
        app.dependency_overrides[get_search_cache] = lambda: search_cache
        search_cache.set("k", 1)
        search_limiter.check("203.0.113.7")

        with TestClient(app) as client:
            data = client.get("/health").json()

        assert data["components"]["search_cache"]["total_entries"] == 1
        assert data["components"]["search_rate_limiter"]["config"]["max_requests"] == 3
        assert data["components"]["search_rate_limiter"]["total_keys"] == 1
