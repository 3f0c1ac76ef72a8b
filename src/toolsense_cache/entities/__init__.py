"""Domain entities for internal representation.

These are pure dataclasses used internally by services and repositories.
They are NOT used for API contracts - use DTOs from the dto package for
that.

Entities should have:
- No Pydantic validation
- No external dependencies
- Pure domain logic only
"""

from .cache_entry import CacheEntry, CacheStats
from .chat import ChatMessage, ChatOutcome, GenerationResult
from .rate_window import RateLimitResult, RateWindow
from .store_result import StoreResult
from .usage_record import UsageRecord

__all__ = [
    "CacheEntry",
    "CacheStats",
    "ChatMessage",
    "ChatOutcome",
    "GenerationResult",
    "RateLimitResult",
    "RateWindow",
    "StoreResult",
    "UsageRecord",
]
