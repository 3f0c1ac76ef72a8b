"""JSON file implementation of CacheStore.

Used by single-process deployments that have no shared store. The whole
collection lives in one JSON document; every operation loads it, mutates it
in memory and rewrites it.
"""

import json
import os
import tempfile
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
    derive_key,
    normalize_language,
    normalize_query,
)

logger = structlog.get_logger(__name__)

CACHE_FILE_NAME = "assessments.json"


class FileCacheRepository:
    """Process-local cache persisted as a JSON file.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.

    The collection is capped at ``max_entries``; a write that would exceed
    the cap evicts the oldest entries by creation time. A lock serializes
    read-modify-write cycles within the process, but nothing coordinates
    separate processes sharing the same file.
    """

    def __init__(
        self,
        cache_dir: str | Path | None = None,
        max_entries: int | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the file cache repository.

        Args:
            cache_dir: Directory holding the cache file. Defaults to settings.
            max_entries: Maximum number of entries kept. Defaults to settings.
            clock: Returns the current Unix time in seconds. Defaults to time.time.
        """
        self._cache_dir = Path(cache_dir or settings.cache_dir)
        self._cache_file = self._cache_dir / CACHE_FILE_NAME
        self._max_entries = max_entries or settings.cache_max_entries
        self._clock = clock or time.time
        self._lock = threading.Lock()

        self._cache_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def create(
        cls,
        cache_dir: str | Path | None = None,
        max_entries: int | None = None,
    ) -> "FileCacheRepository":
        """Factory method to create FileCacheRepository with defaults.

        Args:
            cache_dir: Directory for the cache file. If None, uses settings.
            max_entries: Size cap. If None, uses settings.

        Returns:
            Configured FileCacheRepository
        """
        return cls(cache_dir=cache_dir, max_entries=max_entries)

    def _load(self) -> list[CacheEntry]:
        """Read all entries from disk.

        A missing file is an empty cache. A corrupt file is logged and also
        treated as empty, so the next write replaces it.
        """
        if not self._cache_file.exists():
            return []

        try:
            data = json.loads(self._cache_file.read_text(encoding="utf-8"))
            return [CacheEntry.from_dict(item) for item in data.get("entries", [])]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("cache_file_corrupt", path=str(self._cache_file), error=str(e))
            return []

    def _save(self, entries: list[CacheEntry]) -> None:
        """Atomically rewrite the cache file."""
        payload = json.dumps(
            {"entries": [entry.to_dict() for entry in entries]},
            ensure_ascii=False,
            indent=2,
        )
        fd, tmp_path = tempfile.mkstemp(dir=self._cache_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self._cache_file)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def get(
        self,
        query: str,
        language: str = DEFAULT_LANGUAGE,
        user_id: str | None = None,
    ) -> str | None:
        """Look up a live cached response.

        ``user_id`` is accepted for protocol compatibility; this tier does
        not track usage.
        """
        normalized = normalize_query(query)
        lang = normalize_language(language)
        key = derive_key(normalized, lang)

        try:
            with self._lock:
                entries = self._load()
        except OSError as e:
            logger.warning("cache_read_failed", backend="file", key=key, error=str(e))
            return None

        now = self._clock()
        for entry in entries:
            if (
                entry.normalized_query == normalized
                and entry.language == lang
                and not entry.is_expired(now)
            ):
                logger.info("cache_hit", backend="file", key=key)
                return entry.response

        logger.info("cache_miss", backend="file", key=key)
        return None

    def set(
        self,
        query: str,
        response: str,
        model: str = DEFAULT_MODEL,
        language: str = DEFAULT_LANGUAGE,
        user_id: str | None = None,
    ) -> StoreResult:
        """Insert or replace the entry, then enforce the size cap."""
        normalized = normalize_query(query)
        lang = normalize_language(language)
        key = derive_key(normalized, lang)

        entry = CacheEntry(
            normalized_query=normalized,
            language=lang,
            original_query=query.strip(),
            response=response,
            model=model,
            created_at=self._clock(),
        )

        try:
            with self._lock:
                entries = [
                    e
                    for e in self._load()
                    if not (e.normalized_query == normalized and e.language == lang)
                ]
                entries.append(entry)

                if len(entries) > self._max_entries:
                    entries.sort(key=lambda e: e.created_at, reverse=True)
                    evicted = len(entries) - self._max_entries
                    entries = entries[: self._max_entries]
                    logger.debug("cache_evicted", backend="file", count=evicted)

                self._save(entries)
        except OSError as e:
            logger.warning("cache_store_failed", backend="file", key=key, error=str(e))
            return StoreResult.failure(e, key=key)

        logger.info("cache_stored", backend="file", key=key, model=model)
        return StoreResult.success(key)

    def clear_expired(self) -> int:
        """Delete entries past the retention window.

        Returns:
            Number of entries removed
        """
        try:
            with self._lock:
                entries = self._load()
                now = self._clock()
                kept = [e for e in entries if not e.is_expired(now)]
                removed = len(entries) - len(kept)
                if removed:
                    self._save(kept)
        except OSError as e:
            logger.warning("cache_sweep_failed", backend="file", error=str(e))
            return 0

        if removed:
            logger.info("cache_expired_cleared", backend="file", count=removed)
        return removed

    def clear_all(self) -> int:
        """Delete every entry.

        Returns:
            Number of entries removed
        """
        try:
            with self._lock:
                removed = len(self._load())
                self._save([])
        except OSError as e:
            logger.warning("cache_clear_failed", backend="file", error=str(e))
            return 0

        logger.info("cache_cleared", backend="file", count=removed)
        return removed

    def stats(self) -> CacheStats:
        try:
            with self._lock:
                entries = self._load()
        except OSError as e:
            logger.warning("cache_stats_failed", backend="file", error=str(e))
            return CacheStats()

        now = self._clock()
        expired = sum(1 for e in entries if e.is_expired(now))
        return CacheStats(total=len(entries), expired=expired, valid=len(entries) - expired)

    def health_check(self) -> bool:
        """Check that the cache directory is writable."""
        return self._cache_dir.is_dir() and os.access(self._cache_dir, os.W_OK)

    @property
    def path(self) -> Path:
        """Location of the cache file."""
        return self._cache_file
