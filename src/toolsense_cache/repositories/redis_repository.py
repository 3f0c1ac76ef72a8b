"""Redis implementation of CacheStore.

This is the shared tier: every server instance and every user reads and
writes the same documents, so a report generated for one user answers the
same (query, language) for everyone else. Document ids are SHA-256 digests
of ``normalized_query:language`` so raw queries never appear in key names.

Layout:
    <prefix>:responses:<sha256>     hash  - one cache entry
    <prefix>:users:<user_id>        set   - hashed keys the user touched
    <prefix>:user_meta:<user_id>    hash  - user_id, last_updated
"""

import time
from collections.abc import Callable, Iterator

import redis
import structlog

from toolsense_cache.config import get_redis_client, settings
from toolsense_cache.entities import CacheEntry, CacheStats, StoreResult, UsageRecord
from toolsense_cache.normalization import (
    DEFAULT_LANGUAGE,
    DEFAULT_MODEL,
    RETENTION_SECONDS,
    derive_hashed_key,
    normalize_language,
    normalize_query,
)

logger = structlog.get_logger(__name__)

# Upper bound on keys deleted per pipeline during a sweep.
BATCH_SIZE = 500


def _parse_timestamp(value: str | None) -> float | None:
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


class RedisCacheRepository:
    """Shared cache stored as Redis hashes.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.

    Expiry is evaluated lazily on read and by ``clear_expired``; keys carry
    no Redis TTL so ``stats`` can report expired-but-present entries.
    Concurrent writers to the same key resolve as last-write-wins.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        key_prefix: str | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the Redis cache repository.

        Args:
            redis_client: Redis client instance (decode_responses=True).
                If None, creates default.
            key_prefix: Namespace for all keys. Defaults to settings.
            clock: Returns the current Unix time in seconds. Defaults to time.time.
        """
        self._client = redis_client or get_redis_client()
        self._prefix = key_prefix or settings.cache_key_prefix
        self._clock = clock or time.time

    @classmethod
    def create(
        cls,
        redis_client: redis.Redis | None = None,
        key_prefix: str | None = None,
    ) -> "RedisCacheRepository":
        """Factory method to create RedisCacheRepository with defaults.

        Args:
            redis_client: Redis client. If None, built from settings.
            key_prefix: Key namespace. If None, uses settings.

        Returns:
            Configured RedisCacheRepository
        """
        return cls(redis_client=redis_client, key_prefix=key_prefix)

    def _response_key(self, doc_id: str) -> str:
        return f"{self._prefix}:responses:{doc_id}"

    def _user_key(self, user_id: str) -> str:
        return f"{self._prefix}:users:{user_id}"

    def _user_meta_key(self, user_id: str) -> str:
        return f"{self._prefix}:user_meta:{user_id}"

    def _scan_response_keys(self) -> Iterator[str]:
        return self._client.scan_iter(match=f"{self._prefix}:responses:*", count=BATCH_SIZE)

    def _created_at_by_key(self) -> dict[str, float | None]:
        """Fetch created_at for every stored response."""
        keys = list(self._scan_response_keys())
        if not keys:
            return {}

        pipe = self._client.pipeline(transaction=False)
        for key in keys:
            pipe.hget(key, "created_at")
        values = pipe.execute()

        return {key: _parse_timestamp(value) for key, value in zip(keys, values)}

    def _is_expired(self, created_at: float | None, now: float) -> bool:
        # Entries with a missing or unreadable timestamp count as expired.
        if created_at is None:
            return True
        return now - created_at > RETENTION_SECONDS

    def get(
        self,
        query: str,
        language: str = DEFAULT_LANGUAGE,
        user_id: str | None = None,
    ) -> str | None:
        """Look up a live shared response.

        The key depends only on the normalized query and language, never on
        the user, so any user's earlier write can satisfy this read. When
        ``user_id`` is given, a hit is recorded in the user's usage set.
        """
        normalized = normalize_query(query)
        lang = normalize_language(language)
        doc_id = derive_hashed_key(normalized, lang)

        try:
            data = self._client.hgetall(self._response_key(doc_id))
        except redis.RedisError as e:
            logger.warning("cache_read_failed", backend="redis", key=doc_id, error=str(e))
            return None

        if not data:
            logger.info("cache_miss", backend="redis", key=doc_id)
            return None

        try:
            entry = CacheEntry.from_dict(data)
        except (KeyError, ValueError) as e:
            logger.warning("cache_entry_corrupt", backend="redis", key=doc_id, error=str(e))
            return None

        if normalize_language(entry.language) != lang or entry.is_expired(self._clock()):
            logger.info("cache_miss", backend="redis", key=doc_id)
            return None

        if user_id:
            self.track_usage(user_id, doc_id)

        logger.info("cache_hit", backend="redis", key=doc_id)
        return entry.response

    def set(
        self,
        query: str,
        response: str,
        model: str = DEFAULT_MODEL,
        language: str = DEFAULT_LANGUAGE,
        user_id: str | None = None,
    ) -> StoreResult:
        """Replace the shared document for (query, language)."""
        normalized = normalize_query(query)
        lang = normalize_language(language)
        doc_id = derive_hashed_key(normalized, lang)
        key = self._response_key(doc_id)

        entry = CacheEntry(
            normalized_query=normalized,
            language=lang,
            original_query=query.strip(),
            response=response,
            model=model,
            created_at=self._clock(),
        )
        mapping = {name: str(value) for name, value in entry.to_dict().items()}

        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.delete(key)
            pipe.hset(key, mapping=mapping)
            pipe.execute()
        except redis.RedisError as e:
            logger.warning("cache_store_failed", backend="redis", key=doc_id, error=str(e))
            return StoreResult.failure(e, key=doc_id)

        if user_id:
            self.track_usage(user_id, doc_id)

        logger.info("cache_stored", backend="redis", key=doc_id, model=model)
        return StoreResult.success(doc_id)

    def track_usage(self, user_id: str, doc_id: str) -> bool:
        """Record that ``user_id`` produced or retrieved ``doc_id``.

        Repeated calls for the same pair are no-ops. Failures are logged and
        never raised.

        Args:
            user_id: Acting user
            doc_id: Hashed cache key

        Returns:
            True if the key was newly added for this user
        """
        try:
            added = self._client.sadd(self._user_key(user_id), doc_id)
            if added:
                self._client.hset(
                    self._user_meta_key(user_id),
                    mapping={"user_id": user_id, "last_updated": str(self._clock())},
                )
        except redis.RedisError as e:
            logger.warning("usage_tracking_failed", user_id=user_id, key=doc_id, error=str(e))
            return False
        return bool(added)

    def get_usage(self, user_id: str) -> UsageRecord | None:
        """Fetch the usage record for a user, or None if they have none."""
        try:
            keys = self._client.smembers(self._user_key(user_id))
            meta = self._client.hgetall(self._user_meta_key(user_id))
        except redis.RedisError as e:
            logger.warning("usage_read_failed", user_id=user_id, error=str(e))
            return None

        if not keys:
            return None
        return UsageRecord(
            user_id=user_id,
            touched_entry_keys=frozenset(keys),
            last_updated=_parse_timestamp(meta.get("last_updated")) or 0.0,
        )

    def _delete_in_batches(self, keys: list[str]) -> int:
        """Delete keys in pipelines of at most BATCH_SIZE; each commits on its own."""
        deleted = 0
        for start in range(0, len(keys), BATCH_SIZE):
            chunk = keys[start : start + BATCH_SIZE]
            pipe = self._client.pipeline(transaction=True)
            for key in chunk:
                pipe.delete(key)
            deleted += sum(pipe.execute())
        return deleted

    def _delete_batch_if_expired(self, keys: list[str], now: float) -> int:
        """Delete the keys in one WATCHed transaction, re-checking each timestamp.

        A key rewritten by another instance since the scan is left alone.
        redis-py retries the transaction if a watched key changes before EXEC.
        """

        def delete_stale(pipe: redis.client.Pipeline) -> None:
            stale = [
                key
                for key in keys
                if self._is_expired(_parse_timestamp(pipe.hget(key, "created_at")), now)
            ]
            pipe.multi()
            for key in stale:
                pipe.delete(key)

        return sum(self._client.transaction(delete_stale, *keys))

    def clear_expired(self) -> int:
        """Delete expired shared documents.

        Returns:
            Number of entries removed
        """
        try:
            now = self._clock()
            expired = [
                key
                for key, created_at in self._created_at_by_key().items()
                if self._is_expired(created_at, now)
            ]
            removed = sum(
                self._delete_batch_if_expired(expired[start : start + BATCH_SIZE], now)
                for start in range(0, len(expired), BATCH_SIZE)
            )
        except redis.RedisError as e:
            logger.warning("cache_sweep_failed", backend="redis", error=str(e))
            return 0

        if removed:
            logger.info("cache_expired_cleared", backend="redis", count=removed)
        return removed

    def clear_all(self) -> int:
        """Delete every shared document. Usage records are kept.

        Returns:
            Number of entries removed
        """
        try:
            removed = self._delete_in_batches(list(self._scan_response_keys()))
        except redis.RedisError as e:
            logger.warning("cache_clear_failed", backend="redis", error=str(e))
            return 0

        logger.info("cache_cleared", backend="redis", count=removed)
        return removed

    def stats(self) -> CacheStats:
        try:
            created = self._created_at_by_key()
        except redis.RedisError as e:
            logger.warning("cache_stats_failed", backend="redis", error=str(e))
            return CacheStats()

        now = self._clock()
        expired = sum(1 for value in created.values() if self._is_expired(value, now))
        return CacheStats(total=len(created), expired=expired, valid=len(created) - expired)

    def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
