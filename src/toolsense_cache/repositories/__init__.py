"""Repository layer for data access.

This layer hides external systems (local disk, SQLite, Redis, the Gemini
API) behind the protocol-based interfaces in ``toolsense_cache.protocols``.

The repositories are protocol-based (structural typing), not
inheritance-based. Any class implementing the required methods satisfies
the protocol.
"""

from toolsense_cache.protocols import CacheStore, ReportGenerator

from .file_repository import FileCacheRepository
from .gemini_generator import GeminiReportGenerator
from .redis_repository import RedisCacheRepository
from .sqlite_repository import SQLiteCacheRepository

__all__ = [
    "CacheStore",
    "ReportGenerator",
    "FileCacheRepository",
    "SQLiteCacheRepository",
    "RedisCacheRepository",
    "GeminiReportGenerator",
]
