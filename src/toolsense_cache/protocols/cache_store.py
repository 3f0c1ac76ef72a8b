"""Cache storage protocol.

Defines the interface shared by every tier that stores generated reports.
All implementations normalize the query and derive the key through
``toolsense_cache.normalization`` so that the tiers agree on identity and on
the 7-day retention window.

Implementations:
- FileCacheRepository (single process, JSON on local disk)
- SQLiteCacheRepository (one database per client profile)
- RedisCacheRepository (shared across users and server instances)
"""

from typing import Protocol, runtime_checkable

from toolsense_cache.entities import CacheStats, StoreResult


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for cache storage backends.

    Any type that implements these methods satisfies the protocol, no
    explicit inheritance needed.

    Reads fail open: a storage error on ``get`` is logged and reported as a
    miss. Writes are best-effort: ``set`` never raises and returns a
    ``StoreResult`` instead.

    Example:
        ```python
        from toolsense_cache.protocols import CacheStore

        store: CacheStore = FileCacheRepository.create()
        store: CacheStore = RedisCacheRepository.create()
        ```
    """

    def get(
        self,
        query: str,
        language: str = "en",
        user_id: str | None = None,
    ) -> str | None:
        """Look up a live cached response.

        Args:
            query: The user's query, in any form
            language: Language tag of the requested report
            user_id: Acting user, recorded on hit by stores that track usage

        Returns:
            The cached response, or None on miss, expiry or storage error
        """
        ...

    def set(
        self,
        query: str,
        response: str,
        model: str = "gemini-2.5-pro",
        language: str = "en",
        user_id: str | None = None,
    ) -> StoreResult:
        """Insert or fully replace the entry for (query, language).

        Args:
            query: The user's query, in any form
            response: The generated report
            model: Generator identifier
            language: Language tag of the report
            user_id: Acting user, recorded by stores that track usage

        Returns:
            StoreResult describing success or the swallowed failure
        """
        ...

    def clear_expired(self) -> int:
        """Delete entries past the retention window.

        Returns:
            Number of entries removed
        """
        ...

    def clear_all(self) -> int:
        """Delete every entry.

        Returns:
            Number of entries removed
        """
        ...

    def stats(self) -> CacheStats:
        """Count total, expired and valid entries."""
        ...

    def health_check(self) -> bool:
        """Check if the backend is accessible.

        Returns:
            True if healthy, False otherwise
        """
        ...
