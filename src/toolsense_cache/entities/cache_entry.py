"""Cache entry domain entity."""

from dataclasses import asdict, dataclass
from typing import Any

from toolsense_cache.normalization import RETENTION_SECONDS


@dataclass(frozen=True)
class CacheEntry:
    """Domain entity for a cached security report.

    Entries are immutable; a write for the same (normalized_query, language)
    pair replaces the whole entry.

    Attributes:
        normalized_query: Canonical form of the user's query
        language: Lowercase language tag, part of the entry identity
        original_query: The user's input as typed, kept for diagnostics
        response: The generated report text
        model: Identifier of the generator that produced the response
        created_at: Creation time (Unix timestamp, seconds)
    """

    normalized_query: str
    language: str
    original_query: str
    response: str
    model: str
    created_at: float

    def is_expired(self, now: float) -> bool:
        """Check whether the entry is past the retention window at ``now``."""
        return now - self.created_at > RETENTION_SECONDS

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        return cls(
            normalized_query=str(data["normalized_query"]),
            language=str(data["language"]),
            original_query=str(data.get("original_query", "")),
            response=str(data["response"]),
            model=str(data.get("model", "")),
            created_at=float(data["created_at"]),
        )


@dataclass(frozen=True)
class CacheStats:
    """Read-only snapshot of a store's contents."""

    total: int = 0
    expired: int = 0
    valid: int = 0
