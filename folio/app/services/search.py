"""Search services backing the ``/api/search`` endpoint.

The CMS client is not part of this package; anything that can answer a
query implements ``SearchService``. ``InMemorySearchIndex`` covers tests,
local development and statically exported content.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from folio.app.core.logging import get_logger

logger = get_logger(__name__)


class SearchHit(BaseModel):
    """One article or project matching a query."""

    id: str
    slug: str
    title: str
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class SearchResults(BaseModel):
    """Search response payload."""

    articles: List[SearchHit] = Field(default_factory=list)
    projects: List[SearchHit] = Field(default_factory=list)


class SearchService(ABC):
    """Abstract base class for search backends."""

    @abstractmethod
    async def search(self, query: str) -> SearchResults:
        """Find articles and projects matching ``query``.

        Raises:
            SearchBackendError: If the content source cannot be reached.
        """
        pass


class InMemorySearchIndex(SearchService):
    """Case-insensitive substring search over in-memory documents.

    A document matches when the query occurs in its title, description or
    any of its tags. Results keep insertion order and are capped at
    ``max_results`` per kind.
    """

    def __init__(
        self,
        articles: Iterable[SearchHit] = (),
        projects: Iterable[SearchHit] = (),
        max_results: int = 10,
    ) -> None:
        self._articles = list(articles)
        self._projects = list(projects)
        self._max_results = max_results

    def add_article(self, hit: SearchHit) -> None:
        self._articles.append(hit)

    def add_project(self, hit: SearchHit) -> None:
        self._projects.append(hit)

    @staticmethod
    def _matches(hit: SearchHit, needle: str) -> bool:
        haystacks = [hit.title, hit.description or "", *hit.tags]
        return any(needle in text.lower() for text in haystacks)

    def _filter(self, hits: List[SearchHit], needle: str) -> List[SearchHit]:
        return [hit for hit in hits if self._matches(hit, needle)][: self._max_results]

    async def search(self, query: str) -> SearchResults:
        needle = query.strip().lower()
        results = SearchResults(
            articles=self._filter(self._articles, needle),
            projects=self._filter(self._projects, needle),
        )
        logger.debug(
            f"Search '{needle}': {len(results.articles)} articles, {len(results.projects)} projects"
        )
        return results
