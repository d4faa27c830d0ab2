"""Public search endpoint.

Flow: rate limit the caller, validate ``q``, answer from the search cache
when possible, otherwise query the search service and cache its answer.
"""

from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, StringConstraints, ValidationError

from folio.app.core.cache import TTLCache, generate_search_cache_key, get_search_cache
from folio.app.core.config import settings
from folio.app.core.logging import get_log_context, get_logger
from folio.app.exceptions import (
    InvalidSearchQueryError,
    RateLimitExceededError,
    SearchBackendError,
)
from folio.app.middleware.rate_limit import (
    RateLimiter,
    create_rate_limit_headers,
    get_client_ip,
    get_search_rate_limiter,
)
from folio.app.services.search import SearchService

router = APIRouter(prefix="/api", tags=["search"])
logger = get_logger(__name__)

# Letters (including French accented ones), digits, whitespace, hyphen, apostrophe
SEARCH_QUERY_PATTERN = r"^[a-zA-Z0-9àâäéèêëïîôùûüÿçÀÂÄÉÈÊËÏÎÔÙÛÜŸÇ\s\-']+$"


class SearchQuery(BaseModel):
    """Validated search parameters."""

    q: Annotated[
        str,
        StringConstraints(strip_whitespace=True, min_length=2, max_length=100, pattern=SEARCH_QUERY_PATTERN),
    ]


def validate_search_query(raw: Optional[str]) -> str:
    """Validate and normalize the raw ``q`` parameter.

    Returns:
        The trimmed query

    Raises:
        InvalidSearchQueryError: With one detail entry per failed constraint
    """
    try:
        return SearchQuery(q=raw).q
    except ValidationError as e:
        details: List[Dict[str, Any]] = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise InvalidSearchQueryError(details=details) from e


def get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


SearchServiceDep = Annotated[SearchService, Depends(get_search_service)]
SearchCacheDep = Annotated[TTLCache, Depends(get_search_cache)]
SearchLimiterDep = Annotated[RateLimiter, Depends(get_search_rate_limiter)]


@router.get("/search")
async def search(
    request: Request,
    service: SearchServiceDep,
    cache: SearchCacheDep,
    limiter: SearchLimiterDep,
    q: Optional[str] = None,
) -> JSONResponse:
    """Search articles and projects."""
    client_key = get_client_ip(request, development=settings.is_development)
    result = limiter.check(client_key)
    headers = create_rate_limit_headers(result, iso_reset=True)

    if not result.allowed:
        logger.info(
            "Search rate limit exceeded",
            extra=get_log_context(client_key=client_key, retry_after=result.retry_after),
        )
        raise RateLimitExceededError(retry_after=result.retry_after or 0, headers=headers)

    try:
        query = validate_search_query(q)
    except InvalidSearchQueryError as e:
        e.headers = headers
        raise

    cache_key = generate_search_cache_key(query)
    cached = cache.get(cache_key)
    if cached is not None:
        return JSONResponse(content=cached, headers={**headers, "X-Cache": "HIT"})

    try:
        results = await service.search(query)
    except SearchBackendError as e:
        logger.error(f"Search backend error: {e.message}", extra=get_log_context(client_key=client_key))
        return JSONResponse(
            status_code=500,
            content={"error": "Search failed", "articles": [], "projects": []},
            headers=headers,
        )
    except Exception:
        logger.exception("Search API error", extra=get_log_context(client_key=client_key))
        return JSONResponse(
            status_code=500,
            content={"error": "Search failed", "articles": [], "projects": []},
            headers=headers,
        )

    payload = results.model_dump()
    cache.set(cache_key, payload)
    return JSONResponse(content=payload, headers={**headers, "X-Cache": "MISS"})
