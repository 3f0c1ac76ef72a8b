"""SQLite implementation of CacheStore.

Each client profile gets its own database file, so entries are durable for
that profile but never shared with other users. Lookups go through a
secondary index on the normalized query; the language is matched afterwards
in Python.
"""

import sqlite3
import threading
import time
from collections.abc import Callable
from pathlib import Path

import structlog

from toolsense_cache.config import settings
from toolsense_cache.entities import CacheEntry, CacheStats, StoreResult
from toolsense_cache.normalization import (
    DEFAULT_LANGUAGE,
    DEFAULT_MODEL,
    RETENTION_SECONDS,
    derive_key,
    normalize_language,
    normalize_query,
)

logger = structlog.get_logger(__name__)

DB_FILE_NAME = "toolsense_cache.sqlite3"
TABLE_NAME = "assessments"

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    id TEXT PRIMARY KEY,
    normalized_query TEXT NOT NULL,
    original_query TEXT NOT NULL,
    language TEXT NOT NULL,
    response TEXT NOT NULL,
    model TEXT NOT NULL,
    created_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_normalized_query ON {TABLE_NAME}(normalized_query);
CREATE INDEX IF NOT EXISTS idx_language ON {TABLE_NAME}(language);
CREATE INDEX IF NOT EXISTS idx_created_at ON {TABLE_NAME}(created_at);
"""

_COLUMNS = "normalized_query, language, original_query, response, model, created_at"


class SQLiteCacheRepository:
    """Per-profile cache backed by a local SQLite database.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.

    The connection is opened lazily on first use. If the database cannot be
    opened, reads behave as misses and writes report failure.
    """

    def __init__(
        self,
        profile_dir: str | Path | None = None,
        profile_id: str = "default",
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the SQLite cache repository.

        Args:
            profile_dir: Root directory for client profiles. Defaults to settings.
            profile_id: Profile whose database is used.
            clock: Returns the current Unix time in seconds. Defaults to time.time.
        """
        root = Path(profile_dir or settings.client_cache_dir)
        self._db_path = root / profile_id / DB_FILE_NAME
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

    @classmethod
    def create(
        cls,
        profile_dir: str | Path | None = None,
        profile_id: str = "default",
    ) -> "SQLiteCacheRepository":
        """Factory method to create SQLiteCacheRepository with defaults.

        Args:
            profile_dir: Root directory for profiles. If None, uses settings.
            profile_id: Client profile identifier.

        Returns:
            Configured SQLiteCacheRepository
        """
        return cls(profile_dir=profile_dir, profile_id=profile_id)

    def _connection(self) -> sqlite3.Connection:
        """Open the database and create the schema on first use."""
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.executescript(_SCHEMA)
            self._conn = conn
        return self._conn

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> CacheEntry:
        return CacheEntry(
            normalized_query=row["normalized_query"],
            language=row["language"],
            original_query=row["original_query"],
            response=row["response"],
            model=row["model"],
            created_at=row["created_at"],
        )

    def get(
        self,
        query: str,
        language: str = DEFAULT_LANGUAGE,
        user_id: str | None = None,
    ) -> str | None:
        """Look up a live cached response via the normalized-query index."""
        normalized = normalize_query(query)
        lang = normalize_language(language)
        key = derive_key(normalized, lang)

        try:
            with self._lock:
                rows = (
                    self._connection()
                    .execute(
                        f"SELECT {_COLUMNS} FROM {TABLE_NAME} WHERE normalized_query = ?",
                        (normalized,),
                    )
                    .fetchall()
                )
        except (sqlite3.Error, OSError) as e:
            logger.warning("cache_read_failed", backend="sqlite", key=key, error=str(e))
            return None

        now = self._clock()
        for entry in map(self._row_to_entry, rows):
            if entry.language == lang and not entry.is_expired(now):
                logger.info("cache_hit", backend="sqlite", key=key)
                return entry.response

        logger.info("cache_miss", backend="sqlite", key=key)
        return None

    def set(
        self,
        query: str,
        response: str,
        model: str = DEFAULT_MODEL,
        language: str = DEFAULT_LANGUAGE,
        user_id: str | None = None,
    ) -> StoreResult:
        """Upsert the entry keyed by ``normalized_query:language``."""
        normalized = normalize_query(query)
        lang = normalize_language(language)
        key = derive_key(normalized, lang)

        try:
            with self._lock:
                conn = self._connection()
                with conn:
                    conn.execute(
                        f"INSERT OR REPLACE INTO {TABLE_NAME} (id, {_COLUMNS}) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?)",
                        (key, normalized, lang, query.strip(), response, model, self._clock()),
                    )
        except (sqlite3.Error, OSError) as e:
            logger.warning("cache_store_failed", backend="sqlite", key=key, error=str(e))
            return StoreResult.failure(e, key=key)

        logger.info("cache_stored", backend="sqlite", key=key, model=model)
        return StoreResult.success(key)

    def clear_expired(self) -> int:
        """Delete entries past the retention window using the created_at index.

        Returns:
            Number of entries removed
        """
        cutoff = self._clock() - RETENTION_SECONDS
        try:
            with self._lock:
                conn = self._connection()
                with conn:
                    cursor = conn.execute(
                        f"DELETE FROM {TABLE_NAME} WHERE created_at < ?",
                        (cutoff,),
                    )
                removed = cursor.rowcount
        except (sqlite3.Error, OSError) as e:
            logger.warning("cache_sweep_failed", backend="sqlite", error=str(e))
            return 0

        if removed:
            logger.info("cache_expired_cleared", backend="sqlite", count=removed)
        return removed

    def clear_all(self) -> int:
        """Delete every entry.

        Returns:
            Number of entries removed
        """
        try:
            with self._lock:
                conn = self._connection()
                with conn:
                    removed = conn.execute(f"DELETE FROM {TABLE_NAME}").rowcount
        except (sqlite3.Error, OSError) as e:
            logger.warning("cache_clear_failed", backend="sqlite", error=str(e))
            return 0

        logger.info("cache_cleared", backend="sqlite", count=removed)
        return removed

    def stats(self) -> CacheStats:
        cutoff = self._clock() - RETENTION_SECONDS
        try:
            with self._lock:
                row = (
                    self._connection()
                    .execute(
                        f"SELECT COUNT(*) AS total, "
                        f"COALESCE(SUM(CASE WHEN created_at < ? THEN 1 ELSE 0 END), 0) AS expired "
                        f"FROM {TABLE_NAME}",
                        (cutoff,),
                    )
                    .fetchone()
                )
        except (sqlite3.Error, OSError) as e:
            logger.warning("cache_stats_failed", backend="sqlite", error=str(e))
            return CacheStats()

        total, expired = int(row["total"]), int(row["expired"])
        return CacheStats(total=total, expired=expired, valid=total - expired)

    def health_check(self) -> bool:
        try:
            with self._lock:
                self._connection().execute("SELECT 1")
            return True
        except (sqlite3.Error, OSError):
            return False

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    @property
    def path(self) -> Path:
        """Location of the profile database."""
        return self._db_path
