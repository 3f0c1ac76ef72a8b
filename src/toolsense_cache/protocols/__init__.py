"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Swapping cache tiers (file → SQLite → Redis) without touching services
- Unit testing with fake generators
- Clear separation of concerns

Usage:
    ```python
    from toolsense_cache.protocols import CacheStore, ReportGenerator

    store: CacheStore = FileCacheRepository.create()
    store: CacheStore = RedisCacheRepository.create()
    ```
"""

from .cache_store import CacheStore
from .report_generator import ReportGenerator

__all__ = [
    "CacheStore",
    "ReportGenerator",
]
