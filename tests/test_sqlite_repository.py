"""
Tests specific to the per-profile SQLite cache.
"""

import sqlite3

from toolsense_cache.repositories import SQLiteCacheRepository


def test_profiles_are_isolated(tmp_path, clock):
    alice = SQLiteCacheRepository(profile_dir=tmp_path, profile_id="alice", clock=clock)
    bob = SQLiteCacheRepository(profile_dir=tmp_path, profile_id="bob", clock=clock)

    alice.set("gitlab", "alice's report", "gemini-2.5-pro", "en")

    assert alice.get("gitlab", "en") == "alice's report"
    assert bob.get("gitlab", "en") is None
    alice.close()
    bob.close()


def test_entries_persist_across_instances(tmp_path, clock):
    first = SQLiteCacheRepository(profile_dir=tmp_path, clock=clock)
    first.set("GitLab", "report", "gemini-2.5-pro", "en")
    first.close()

    second = SQLiteCacheRepository(profile_dir=tmp_path, clock=clock)
    assert second.get("https://gitlab.com", "en") == "report"
    second.close()


def test_rows_use_composite_id_and_query_index(sqlite_store):
    sqlite_store.set("GitLab", "report", "gemini-2.5-pro", "en")
    sqlite_store.set("GitLab", "rapport", "gemini-2.5-pro", "fr")
    sqlite_store.close()

    conn = sqlite3.connect(sqlite_store.path)
    ids = sorted(row[0] for row in conn.execute("SELECT id FROM assessments"))
    indexes = {row[1] for row in conn.execute("PRAGMA index_list('assessments')")}
    conn.close()

    assert ids == ["gitlab:en", "gitlab:fr"]
    assert "idx_normalized_query" in indexes


def test_unavailable_database_fails_open(tmp_path, clock):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("", encoding="utf-8")
    store = SQLiteCacheRepository(profile_dir=blocker, clock=clock)

    assert store.get("gitlab", "en") is None
    assert not store.set("gitlab", "report", "gemini-2.5-pro", "en").ok
    assert store.clear_expired() == 0
    assert store.stats().total == 0
    assert store.health_check() is False
