"""ToolSense Cache - cached security reports with request admission control.

This package provides a layered architecture around one shared query
normalizer:

Layers:
    - normalization: Query canonicalization and cache key derivation
    - protocols: Interface contracts (CacheStore, ReportGenerator)
    - repositories: File, SQLite and Redis cache tiers, Gemini client
    - services: Business logic (ChatService, RateLimiter)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from toolsense_cache.repositories import FileCacheRepository

    store = FileCacheRepository.create()
    store.set("GitLab", "## ToolSense AI Security Brief: GitLab ...")
    store.get("https://gitlab.com/")  # same entry
    ```

For HTTP API:
    ```python
    from toolsense_cache.api.app import app
    ```
"""

from toolsense_cache.config import get_redis_client, settings
from toolsense_cache.dto import ChatRequest, ChatResponse
from toolsense_cache.entities import (
    CacheEntry,
    CacheStats,
    RateLimitResult,
    RateWindow,
    StoreResult,
    UsageRecord,
)
from toolsense_cache.errors import (
    GenerationError,
    InvalidQueryError,
    RateLimitExceededError,
    ToolSenseError,
)
from toolsense_cache.handlers import ChatHandler
from toolsense_cache.normalization import (
    RETENTION_MS,
    RETENTION_SECONDS,
    derive_hashed_key,
    derive_key,
    normalize_query,
)
from toolsense_cache.protocols import CacheStore, ReportGenerator
from toolsense_cache.repositories import (
    FileCacheRepository,
    GeminiReportGenerator,
    RedisCacheRepository,
    SQLiteCacheRepository,
)
from toolsense_cache.services import ChatService, RateLimiter

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    # Normalization
    "normalize_query",
    "derive_key",
    "derive_hashed_key",
    "RETENTION_MS",
    "RETENTION_SECONDS",
    # Protocols (interfaces)
    "CacheStore",
    "ReportGenerator",
    # Services (business logic)
    "ChatService",
    "RateLimiter",
    # Handlers (HTTP)
    "ChatHandler",
    # Repositories (data access)
    "FileCacheRepository",
    "SQLiteCacheRepository",
    "RedisCacheRepository",
    "GeminiReportGenerator",
    # Entities (domain models)
    "CacheEntry",
    "CacheStats",
    "RateLimitResult",
    "RateWindow",
    "StoreResult",
    "UsageRecord",
    # Errors
    "ToolSenseError",
    "RateLimitExceededError",
    "InvalidQueryError",
    "GenerationError",
    # DTOs (API contracts)
    "ChatRequest",
    "ChatResponse",
]
