"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services built explicitly in the lifespan and stored in app.state
    - Dependency functions retrieve from request.app.state
    - Tests pass their own store, generator and limiter to create_lifespan
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Annotated

import structlog
from fastapi import Depends, FastAPI, Request

from toolsense_cache.config import Settings, get_settings
from toolsense_cache.handlers import ChatHandler
from toolsense_cache.logging_config import configure_logging
from toolsense_cache.protocols import CacheStore, ReportGenerator
from toolsense_cache.repositories import (
    FileCacheRepository,
    GeminiReportGenerator,
    RedisCacheRepository,
    SQLiteCacheRepository,
)
from toolsense_cache.services import ChatService, RateLimiter

logger = structlog.get_logger(__name__)


def build_cache_store(settings: Settings) -> CacheStore:
    """Create the cache tier selected by ``CACHE_BACKEND``."""
    if settings.cache_backend == "redis":
        return RedisCacheRepository.create()
    if settings.cache_backend == "sqlite":
        return SQLiteCacheRepository.create(profile_dir=settings.client_cache_dir)
    return FileCacheRepository.create(cache_dir=settings.cache_dir)


def get_handler(request: Request) -> ChatHandler:
    """Dependency injection for ChatHandler from app.state.

    Args:
        request: FastAPI Request object

    Returns:
        The ChatHandler instance from app.state

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "chat_handler", None)
    if handler is None:
        raise RuntimeError("ChatHandler not initialized. Check lifespan setup.")
    return handler


def get_chat_service(request: Request) -> ChatService:
    """Dependency injection for ChatService from app.state."""
    service = getattr(request.app.state, "chat_service", None)
    if service is None:
        raise RuntimeError("ChatService not initialized. Check lifespan setup.")
    return service


def create_lifespan(
    cache: CacheStore | None = None,
    generator: ReportGenerator | None = None,
    rate_limiter: RateLimiter | None = None,
    settings: Settings | None = None,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Build the lifespan context manager for the FastAPI app.

    Anything not passed in is built from settings. The lifespan owns the
    rate limiter's sweeper task and the generator's HTTP client.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Initialize all layers and store them in app.state.

        1. Cache store (data access) - backend chosen by settings
        2. Generator and rate limiter
        3. Service (business logic) - app.state.chat_service
        4. Handler (HTTP endpoints) - app.state.chat_handler
        """
        cfg = settings or get_settings()
        configure_logging(cfg.log_level, cfg.log_json)

        store = cache or build_cache_store(cfg)
        backend = cfg.cache_backend if cache is None else type(store).__name__
        report_generator = generator or GeminiReportGenerator.create()
        limiter = rate_limiter or RateLimiter()

        chat_service = ChatService.create(
            cache=store,
            generator=report_generator,
            rate_limiter=limiter,
            max_requests=cfg.rate_limit_max_requests,
            window_ms=cfg.rate_limit_window_ms,
        )

        app.state.cache = store
        app.state.rate_limiter = limiter
        app.state.chat_service = chat_service
        app.state.chat_handler = ChatHandler(chat_service=chat_service, cache=store, backend=backend)

        sweeper = asyncio.create_task(limiter.run_sweeper(cfg.rate_limit_sweep_interval))
        logger.info(
            "service_started",
            backend=backend,
            healthy=store.health_check(),
            rate_limit=cfg.rate_limit_max_requests,
            window_ms=cfg.rate_limit_window_ms,
        )

        yield

        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await report_generator.close()

        del app.state.chat_handler
        del app.state.chat_service
        del app.state.rate_limiter
        del app.state.cache
        logger.info("service_stopped")

    return lifespan


# Type aliases for cleaner dependency injection
HandlerDep = Annotated[ChatHandler, Depends(get_handler)]
ServiceDep = Annotated[ChatService, Depends(get_chat_service)]
