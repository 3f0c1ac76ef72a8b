"""Chat service for core business logic.

This service composes admission control, input validation, the report
cache and the report generator:

    admit -> validate -> (fresh only) cache.get -> generate -> cache.set

Only fresh conversations (no prior turns) touch the cache. Cache faults
never fail a request; rate limiting and invalid input do.
"""

import structlog

from toolsense_cache.config import settings
from toolsense_cache.entities import ChatMessage, ChatOutcome, RateLimitResult
from toolsense_cache.errors import InvalidQueryError, RateLimitExceededError
from toolsense_cache.normalization import normalize_language
from toolsense_cache.protocols import CacheStore, ReportGenerator
from toolsense_cache.validation import validate_follow_up, validate_history, validate_query

from .rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)


class ChatService:
    """Core chat orchestration service.

    This service depends on PROTOCOLS, not concrete implementations:
    - CacheStore: file, SQLite or Redis
    - ReportGenerator: Gemini or a test double

    Example:
        ```python
        from toolsense_cache.repositories import FileCacheRepository, GeminiReportGenerator
        from toolsense_cache.services import ChatService, RateLimiter

        service = ChatService.create(
            cache=FileCacheRepository.create(),
            generator=GeminiReportGenerator.create(),
            rate_limiter=RateLimiter(),
        )
        outcome = await service.chat("gitlab.com", client_id="203.0.113.7")
        ```
    """

    def __init__(
        self,
        cache: CacheStore,
        generator: ReportGenerator,
        rate_limiter: RateLimiter,
        max_requests: int | None = None,
        window_ms: int | None = None,
    ) -> None:
        """Initialize the chat service.

        Args:
            cache: Cache storage backend (required).
            generator: Report generator (required).
            rate_limiter: Admission controller (required).
            max_requests: Requests per window. Defaults to settings.
            window_ms: Window length in milliseconds. Defaults to settings.
        """
        self._cache = cache
        self._generator = generator
        self._limiter = rate_limiter
        self._max_requests = max_requests or settings.rate_limit_max_requests
        self._window_ms = window_ms or settings.rate_limit_window_ms

    @classmethod
    def create(
        cls,
        cache: CacheStore,
        generator: ReportGenerator,
        rate_limiter: RateLimiter | None = None,
        max_requests: int | None = None,
        window_ms: int | None = None,
    ) -> "ChatService":
        """Factory method to create ChatService with sensible defaults.

        Args:
            cache: Cache storage backend (required).
            generator: Report generator (required).
            rate_limiter: Admission controller. If None, a fresh one is created.
            max_requests: Requests per window. If None, uses settings.
            window_ms: Window length. If None, uses settings.

        Returns:
            Configured ChatService instance
        """
        return cls(
            cache=cache,
            generator=generator,
            rate_limiter=rate_limiter or RateLimiter(),
            max_requests=max_requests,
            window_ms=window_ms,
        )

    def admit(self, client_id: str) -> RateLimitResult:
        """Run the admission check.

        Raises:
            RateLimitExceededError: If the client's window is exhausted
        """
        result = self._limiter.check(client_id, self._max_requests, self._window_ms)
        if not result.allowed:
            raise RateLimitExceededError(result)
        return result

    def _cached_response(self, query: str, language: str, user_id: str | None) -> str | None:
        try:
            return self._cache.get(query, language, user_id)
        except Exception:
            logger.exception("cache_lookup_error", language=language)
            return None

    def _store_response(
        self,
        query: str,
        response: str,
        model: str,
        language: str,
        user_id: str | None,
    ) -> None:
        try:
            result = self._cache.set(query, response, model, language, user_id)
        except Exception:
            logger.exception("cache_store_error", language=language)
            return
        if not result.ok:
            logger.warning("cache_store_skipped", key=result.key, error=result.error)

    async def chat(
        self,
        message: str,
        history: list[ChatMessage] | None = None,
        language: str = "en",
        client_id: str = "unknown",
        user_id: str | None = None,
    ) -> ChatOutcome:
        """Answer a chat message, serving fresh queries from cache when possible.

        Business logic:
        1. Admission check (rejects before anything else runs)
        2. Validate the message and history
        3. Fresh conversation: return a cached report if one is live
        4. Generate; failures propagate and nothing is cached
        5. Fresh conversation: store the report, best-effort

        Args:
            message: The user's message
            history: Prior turns, oldest first
            language: Report language tag
            client_id: Caller identity for rate limiting
            user_id: Acting user, used for usage tracking on the shared tier

        Returns:
            ChatOutcome with the text, the model and the cached flag

        Raises:
            RateLimitExceededError: Admission rejected
            InvalidQueryError: Message or history failed validation
            GenerationError: The generator failed
        """
        rate_limit = self.admit(client_id)
        history = history or []
        language = normalize_language(language)
        fresh = not history

        if fresh:
            validation = validate_query(message)
        else:
            validation = validate_history([(turn.role, turn.content) for turn in history])
            if validation.is_valid:
                validation = validate_follow_up(message)
        if not validation.is_valid:
            raise InvalidQueryError(validation.error or "Invalid input")

        query = validation.sanitized_input or message

        if fresh:
            cached = self._cached_response(query, language, user_id)
            if cached is not None:
                return ChatOutcome(message=cached, model=None, cached=True, rate_limit=rate_limit)

        result = await self._generator.generate(query, history, language)

        if fresh:
            self._store_response(query, result.text, result.model, language, user_id)

        return ChatOutcome(
            message=result.text,
            model=result.model,
            cached=False,
            rate_limit=rate_limit,
        )

    @property
    def cache(self) -> CacheStore:
        """Get the underlying cache store (for testing)."""
        return self._cache

    @property
    def generator(self) -> ReportGenerator:
        """Get the underlying generator (for testing)."""
        return self._generator

    @property
    def rate_limiter(self) -> RateLimiter:
        """Get the underlying rate limiter (for testing)."""
        return self._limiter
