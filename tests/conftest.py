"""Shared fixtures for folio tests."""

import pytest

from folio.app.core.cache import reset_search_cache
from folio.app.middleware.rate_limit import reset_search_rate_limiter


class FakeClock:
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, start: int = 0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms

    def set(self, ms: int) -> None:
        self.now = ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_singletons():
    """Stop background sweeps of process-wide instances between tests."""
    reset_search_cache()
    reset_search_rate_limiter()
    yield
    reset_search_cache()
    reset_search_rate_limiter()
