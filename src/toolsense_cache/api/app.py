from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from toolsense_cache.api.dependencies import HandlerDep, create_lifespan
from toolsense_cache.config import settings
from toolsense_cache.dto import (
    CacheClearResponse,
    CacheStatsResponse,
    ChatRequest,
    ChatResponse,
    HealthCheckResponse,
)
from toolsense_cache.protocols import CacheStore, ReportGenerator
from toolsense_cache.services import RateLimiter, client_identifier

API_VERSION = "0.1.0"


def create_app(
    cache: CacheStore | None = None,
    generator: ReportGenerator | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Build the ToolSense API.

    Args:
        cache: Cache store override. If None, chosen by CACHE_BACKEND.
        generator: Report generator override. If None, uses Gemini.
        rate_limiter: Rate limiter override. If None, a fresh one is created.

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="ToolSense API",
        description="Security trust reports with cached answers and rate limiting",
        version=API_VERSION,
        lifespan=create_lifespan(cache=cache, generator=generator, rate_limiter=rate_limiter),
    )

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
    )

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": "ToolSense API",
            "version": API_VERSION,
            "endpoints": {
                "chat": "/chat",
                "stats": "/cache/stats",
                "health": "/health",
                "docs": "/docs",
            },
        }

    @app.get("/health", response_model=HealthCheckResponse)
    async def health(handler: HandlerDep) -> HealthCheckResponse:
        """Health check endpoint."""
        return await handler.health_check()

    @app.post("/chat", response_model=ChatResponse)
    async def chat(
        request: ChatRequest,
        http_request: Request,
        response: Response,
        handler: HandlerDep,
    ) -> ChatResponse:
        """Answer a chat message, serving fresh queries from cache when possible."""
        peer = http_request.client.host if http_request.client else None
        client_id = client_identifier(http_request.headers, peer)
        return await handler.chat(request, client_id, response)

    @app.get("/cache/stats", response_model=CacheStatsResponse)
    async def cache_stats(handler: HandlerDep) -> CacheStatsResponse:
        """Get cache statistics."""
        return await handler.get_stats()

    @app.post("/cache/clear-expired", response_model=CacheClearResponse)
    async def clear_expired(handler: HandlerDep) -> CacheClearResponse:
        """Remove entries past the retention window."""
        return await handler.clear_expired()

    @app.delete("/cache", response_model=CacheClearResponse)
    async def clear_cache(handler: HandlerDep) -> CacheClearResponse:
        """Clear all entries from the cache."""
        return await handler.clear_cache()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "toolsense_cache.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
