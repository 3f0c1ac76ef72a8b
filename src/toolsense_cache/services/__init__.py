"""Service layer for business logic.

This layer contains the core business logic and orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from toolsense_cache.services import ChatService, RateLimiter

    service = ChatService.create(cache=store, generator=generator)
    ```
"""

from .chat_service import ChatService
from .rate_limiter import RateLimiter, client_identifier

__all__ = [
    "ChatService",
    "RateLimiter",
    "client_identifier",
]
