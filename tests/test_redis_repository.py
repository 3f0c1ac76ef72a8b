"""
Tests specific to the shared Redis cache.
"""

import fakeredis
import pytest

from toolsense_cache.normalization import RETENTION_SECONDS, derive_hashed_key
from toolsense_cache.repositories import RedisCacheRepository
from toolsense_cache.repositories import redis_repository


def test_documents_are_keyed_by_hash(redis_store, redis_client):
    redis_store.set("GitLab", "report", "gemini-2.5-pro", "en")

    keys = set(redis_client.keys("test:*"))
    assert keys == {f"test:responses:{derive_hashed_key('gitlab', 'en')}"}
    assert not any("gitlab" in key for key in keys)


def test_stored_fields(redis_store, redis_client):
    result = redis_store.set(" GitLab ", "report", "gemini-2.5-pro", "en")

    doc = redis_client.hgetall(f"test:responses:{result.key}")
    assert doc["normalized_query"] == "gitlab"
    assert doc["original_query"] == "GitLab"
    assert doc["language"] == "en"
    assert doc["response"] == "report"
    assert doc["model"] == "gemini-2.5-pro"
    assert float(doc["created_at"]) == 1_700_000_000.0


def test_entry_written_by_one_user_serves_another(redis_store):
    redis_store.set("gitlab", "shared report", "gemini-2.5-pro", "en", user_id="alice")

    assert redis_store.get("gitlab.com", "en", user_id="bob") == "shared report"

    doc_id = derive_hashed_key("gitlab", "en")
    assert redis_store.get_usage("alice").touched_entry_keys == {doc_id}
    assert redis_store.get_usage("bob").touched_entry_keys == {doc_id}


def test_track_usage_is_idempotent(redis_store, clock):
    assert redis_store.track_usage("alice", "abc") is True
    clock.advance(30)
    assert redis_store.track_usage("alice", "abc") is False

    usage = redis_store.get_usage("alice")
    assert usage.touched_entry_keys == {"abc"}
    assert usage.last_updated == 1_700_000_000.0


def test_no_usage_without_a_hit(redis_store, clock):
    assert redis_store.get("gitlab", "en", user_id="bob") is None

    redis_store.set("gitlab", "report", "gemini-2.5-pro", "en")
    clock.advance(RETENTION_SECONDS + 1)
    assert redis_store.get("gitlab", "en", user_id="bob") is None

    assert redis_store.get_usage("bob") is None


def test_clear_all_keeps_usage(redis_store):
    redis_store.set("gitlab", "report", "gemini-2.5-pro", "en", user_id="alice")

    assert redis_store.clear_all() == 1
    assert redis_store.get_usage("alice") is not None


def test_language_mismatch_in_document_is_a_miss(redis_store, redis_client):
    doc_id = derive_hashed_key("gitlab", "en")
    redis_client.hset(
        f"test:responses:{doc_id}",
        mapping={
            "normalized_query": "gitlab",
            "language": "fr",
            "original_query": "gitlab",
            "response": "rapport",
            "model": "gemini-2.5-pro",
            "created_at": "1700000000.0",
        },
    )

    assert redis_store.get("gitlab", "en") is None


def test_document_without_timestamp_counts_as_expired(redis_store, redis_client):
    redis_client.hset("test:responses:broken", mapping={"response": "x"})

    stats = redis_store.stats()
    assert (stats.total, stats.expired) == (1, 1)
    assert redis_store.clear_expired() == 1


def test_sweep_deletes_in_batches(redis_store, clock, monkeypatch):
    monkeypatch.setattr(redis_repository, "BATCH_SIZE", 2)
    for name in ["alpha", "bravo", "charlie", "delta", "echo"]:
        redis_store.set(name, f"report {name}", "gemini-2.5-pro", "en")
    clock.advance(RETENTION_SECONDS + 1)
    redis_store.set("fresh", "report fresh", "gemini-2.5-pro", "en")

    assert redis_store.clear_expired() == 5
    assert redis_store.stats().total == 1
    assert redis_store.get("fresh", "en") == "report fresh"


def test_prefixes_isolate_namespaces(redis_client, clock):
    first = RedisCacheRepository(redis_client=redis_client, key_prefix="one", clock=clock)
    second = RedisCacheRepository(redis_client=redis_client, key_prefix="two", clock=clock)

    first.set("gitlab", "report", "gemini-2.5-pro", "en")

    assert second.get("gitlab", "en") is None
    assert second.clear_all() == 0
    assert first.get("gitlab", "en") == "report"


@pytest.fixture
def offline_store(clock):
    server = fakeredis.FakeServer()
    server.connected = False
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    return RedisCacheRepository(redis_client=client, key_prefix="test", clock=clock)


def test_unreachable_server_fails_open(offline_store):
    assert offline_store.get("gitlab", "en", user_id="alice") is None

    result = offline_store.set("gitlab", "report", "gemini-2.5-pro", "en")
    assert not result.ok
    assert result.key == derive_hashed_key("gitlab", "en")

    assert offline_store.track_usage("alice", "abc") is False
    assert offline_store.get_usage("alice") is None
    assert offline_store.clear_expired() == 0
    assert offline_store.clear_all() == 0
    assert offline_store.stats().total == 0
    assert offline_store.health_check() is False


def test_malformed_usage_timestamp_reads_as_zero(redis_store, redis_client):
    redis_store.track_usage("alice", "abc")
    redis_client.hset("test:user_meta:alice", "last_updated", "garbage")

    usage = redis_store.get_usage("alice")

    assert usage.touched_entry_keys == {"abc"}
    assert usage.last_updated == 0.0


def test_sweep_keeps_entry_rewritten_after_scan(redis_store, clock, monkeypatch):
    redis_store.set("gitlab", "old", "gemini-2.5-pro", "en")
    clock.advance(RETENTION_SECONDS + 1)
    stale_snapshot = redis_store._created_at_by_key()

    # Another instance rewrites the entry between the scan and the delete.
    redis_store.set("gitlab", "fresh", "gemini-2.5-pro", "en")
    monkeypatch.setattr(redis_store, "_created_at_by_key", lambda: stale_snapshot)

    assert redis_store.clear_expired() == 0
    assert redis_store.get("gitlab", "en") == "fresh"
