"""HTTP handlers for chat and cache administration.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, rate-limit headers and error
responses.
"""

from fastapi import HTTPException, Response, status

from toolsense_cache.dto import (
    CacheClearResponse,
    CacheStatsResponse,
    ChatRequest,
    ChatResponse,
    HealthCheckResponse,
)
from toolsense_cache.entities import ChatMessage, RateLimitResult
from toolsense_cache.errors import GenerationError, InvalidQueryError, RateLimitExceededError
from toolsense_cache.normalization import RETENTION_SECONDS
from toolsense_cache.protocols import CacheStore
from toolsense_cache.services import ChatService


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Headers describing the caller's current window."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_epoch_seconds),
    }
    if not result.allowed:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


class ChatHandler:
    """HTTP handlers for chat and cache operations.

    This handler delegates business logic to ChatService and the cache
    store, and handles HTTP-specific concerns like:
    - Converting DTOs to entities and back
    - Rate-limit headers and 429 responses
    - Mapping domain errors to status codes

    Example:
        ```python
        handler = ChatHandler(chat_service=service, cache=store, backend="file")

        @app.post("/chat", response_model=ChatResponse)
        async def chat(request: ChatRequest, http_request: Request, response: Response):
            return await handler.chat(request, client_identifier(http_request.headers), response)
        ```
    """

    def __init__(self, chat_service: ChatService, cache: CacheStore, backend: str) -> None:
        """Initialize the chat handler.

        Args:
            chat_service: The chat service for business logic (required).
            cache: The active cache store, for admin endpoints (required).
            backend: Name of the active cache backend.
        """
        self._chat = chat_service
        self._cache = cache
        self._backend = backend

    async def chat(self, request: ChatRequest, client_id: str, response: Response) -> ChatResponse:
        """Handle POST /chat requests.

        Args:
            request: The chat request DTO
            client_id: Caller identity for rate limiting
            response: Outgoing response, used to attach rate-limit headers

        Returns:
            ChatResponse with the report and the cached flag

        Raises:
            HTTPException: 429 when rate limited, 400 on invalid input,
                502 when generation fails
        """
        history = [ChatMessage(role=turn.role, content=turn.content) for turn in request.history]

        try:
            outcome = await self._chat.chat(
                message=request.message,
                history=history,
                language=request.language,
                client_id=client_id,
                user_id=request.user_id,
            )
        except RateLimitExceededError as e:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Too many requests. Please try again in {e.result.retry_after_seconds} seconds.",
                headers=rate_limit_headers(e.result),
            ) from e
        except InvalidQueryError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e),
            ) from e
        except GenerationError as e:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"Failed to get response from the report generator: {e}",
            ) from e

        if outcome.rate_limit is not None:
            response.headers.update(rate_limit_headers(outcome.rate_limit))

        return ChatResponse(
            message=outcome.message,
            model=outcome.model,
            cached=outcome.cached,
        )

    async def get_stats(self) -> CacheStatsResponse:
        """Handle GET /cache/stats requests."""
        stats = self._cache.stats()
        return CacheStatsResponse(
            backend=self._backend,
            total=stats.total,
            expired=stats.expired,
            valid=stats.valid,
            retention_seconds=RETENTION_SECONDS,
        )

    async def clear_expired(self) -> CacheClearResponse:
        """Handle POST /cache/clear-expired requests."""
        count = self._cache.clear_expired()
        return CacheClearResponse(
            success=True,
            deleted_count=count,
            message=f"Cleared {count} expired cache entries",
        )

    async def clear_cache(self) -> CacheClearResponse:
        """Handle DELETE /cache requests."""
        count = self._cache.clear_all()
        return CacheClearResponse(
            success=True,
            deleted_count=count,
            message="Cache cleared successfully",
        )

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        is_healthy = self._cache.health_check()
        return HealthCheckResponse(
            status="healthy" if is_healthy else "unhealthy",
            cache_healthy=is_healthy,
            backend=self._backend,
        )
