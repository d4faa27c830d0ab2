from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from folio.app.api.search import SearchCacheDep, SearchLimiterDep, router as search_router
from folio.app.core.cache import reset_search_cache
from folio.app.core.config import settings
from folio.app.core.logging import get_logger, setup_logging
from folio.app.exceptions import InvalidSearchQueryError, RateLimitExceededError
from folio.app.middleware.rate_limit import (
    RateLimitMiddleware,
    RateLimitPolicy,
    RateLimiter,
    reset_search_rate_limiter,
)
from folio.app.middleware.request_id import RequestIdMiddleware, get_request_id
from folio.app.services.search import InMemorySearchIndex, SearchService


def create_app(
    search_service: Optional[SearchService] = None,
    api_policy: Optional[RateLimitPolicy] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        search_service: Backend answering search queries; an empty
            in-memory index when omitted
        api_policy: Policy for the generic ``/api/`` rate limit; built from
            settings when omitted

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context manager.

        Stops the background sweeps of the process-wide search cache and
        limiter on shutdown.
        """
        logger.info(
            "Application startup complete",
            extra={
                "environment": settings.environment,
                "search_limit": settings.rate_limit_max_requests,
                "cache_ttl_minutes": settings.cache_ttl_minutes,
            },
        )
        yield

        reset_search_cache()
        reset_search_rate_limiter()
        app.state.api_rate_limiter.stop_sweeper()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Folio",
        description="Content front end with rate-limited, cached search",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.search_service = search_service or InMemorySearchIndex()

    api_policy = api_policy or RateLimitPolicy(
        max_requests=settings.api_rate_limit_max_requests,
        window_ms=settings.api_rate_limit_window_ms,
    )
    app.state.api_rate_limiter = RateLimiter.from_policy(api_policy, name="api-limiter")

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(RateLimitMiddleware, limiter=app.state.api_rate_limiter)

    # Request ID middleware (outermost so 429s carry an ID too)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(search_router)

    @app.get("/health")
    async def health(cache: SearchCacheDep, limiter: SearchLimiterDep) -> dict[str, Any]:
        """Health check endpoint with rate limiter and cache statistics."""
        return {
            "status": "ok",
            "components": {
                "search_cache": cache.get_stats(),
                "search_rate_limiter": limiter.get_stats(),
            },
        }

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        """Handle RateLimitExceededError and return HTTP 429 response."""
        return JSONResponse(
            status_code=429,
            content={"error": exc.message, "retryAfter": exc.retry_after},
            headers=exc.headers,
        )

    @app.exception_handler(InvalidSearchQueryError)
    async def invalid_query_handler(request: Request, exc: InvalidSearchQueryError) -> JSONResponse:
        """Handle InvalidSearchQueryError and return HTTP 400 response."""
        return JSONResponse(
            status_code=400,
            content={
                "error": exc.message,
                "details": exc.details,
                "articles": [],
                "projects": [],
            },
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Logs full details server-side and never returns a traceback.
        """
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
            },
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_error",
                "message": "Internal server error",
                "request_id": request_id,
            },
        )

    return app


# Create the application instance
app = create_app()
