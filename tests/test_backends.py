"""
Tests for the profile directory store backends.

Covers MemoryBackend and SqliteBackend primitives, plus SQLite persistence
across instances.
"""

import sqlite3

import pytest

from profiledir.backends import MemoryBackend, SqliteBackend
from profiledir.core.directory import DirectoryService
from profiledir.core.errors import StoreError
from profiledir.core.models import Profile
from profiledir.core.tags import BucketTag, PROFILE_TAG


@pytest.mark.unit
class TestStorePrimitives:
    """Behaviour shared by every backend."""

    def test_put_get(self, store):
        address = store.put({"type": "profile", "nickname": "Alice", "fields": {}}, "agent")

        record = store.get(address)

        assert record.address == address
        assert record.value == {"type": "profile", "nickname": "Alice", "fields": {}}
        assert record.author == "agent"

    def test_put_returns_address_of(self, store):
        value = {"path": "all_profiles"}

        assert store.put(value, "agent") == store.address_of(value)

    def test_put_idempotent_first_author_wins(self, store):
        value = {"type": "profile", "nickname": "Alice", "fields": {}}
        first = store.put(value, "first")
        second = store.put(value, "second")

        assert first == second
        assert store.get(first).author == "first"

    def test_get_missing(self, store):
        assert store.get(store.address_of({"never": "stored"})) is None

    def test_get_many_aligned(self, store):
        a = store.put({"n": 1}, "agent")
        missing = store.address_of({"n": 2})
        c = store.put({"n": 3}, "agent")

        records = store.get_many([a, missing, c])

        assert [r.value if r else None for r in records] == [{"n": 1}, None, {"n": 3}]

    def test_unserializable_value(self, store):
        with pytest.raises(StoreError):
            store.put({"n": object()}, "agent")

    def test_links_filtered_by_tag(self, store):
        source = store.address_of({"agent": "a"})
        t1 = store.put({"n": 1}, "a")
        t2 = store.put({"n": 2}, "a")
        store.link(source, t1, PROFILE_TAG, "a")
        store.link(source, t2, BucketTag("abc"), "a")

        assert [l.target for l in store.links_from(source)] == [t1, t2]
        assert [l.target for l in store.links_from(source, PROFILE_TAG)] == [t1]
        assert [l.target for l in store.links_from(source, BucketTag("abc"))] == [t2]
        assert store.links_from(source, BucketTag("xyz")) == []

    def test_links_from_many(self, store):
        s1 = store.address_of({"agent": "1"})
        s2 = store.address_of({"agent": "2"})
        s3 = store.address_of({"agent": "3"})
        target = store.put({"n": 1}, "a")
        store.link(s1, target, PROFILE_TAG, "1")
        store.link(s3, target, PROFILE_TAG, "3")

        batched = store.links_from_many([s1, s2, s3], PROFILE_TAG)

        assert [len(links) for links in batched] == [1, 0, 1]
        assert batched[2][0].author == "3"

    def test_unlink_removes_one(self, store):
        source = store.address_of({"agent": "a"})
        target = store.put({"n": 1}, "a")
        store.link(source, target, PROFILE_TAG, "a")
        store.link(source, target, PROFILE_TAG, "b")

        store.unlink(store.links_from(source)[0])

        remaining = store.links_from(source)
        assert [l.author for l in remaining] == ["b"]


@pytest.mark.unit
class TestMemoryBackend:
    """MemoryBackend specifics."""

    def test_stored_value_is_a_copy(self, memory_store):
        fields = {"bio": "hi"}
        address = memory_store.put({"fields": fields}, "agent")
        fields["bio"] = "changed"

        assert memory_store.get(address).value == {"fields": {"bio": "hi"}}

    def test_stats(self, memory_store):
        target = memory_store.put({"n": 1}, "agent")
        memory_store.link(target, target, PROFILE_TAG, "agent")

        assert memory_store.stats() == {"entries": 1, "links": 1}


@pytest.mark.integration
class TestSqliteBackend:
    """SqliteBackend specifics."""

    def test_persists_across_instances(self, tmp_path):
        db_path = tmp_path / "directory.db"
        DirectoryService(SqliteBackend(db_path=db_path), "alice").publish(Profile("Alice", {"bio": "hi"}))

        reopened = DirectoryService(SqliteBackend(db_path=db_path), "bob")

        assert reopened.get_by_identity("alice").profile == Profile("Alice", {"bio": "hi"})
        assert [p.identity for p in reopened.search("ali")] == ["alice"]

    def test_cache_serves_repeat_reads(self, sqlite_store):
        address = sqlite_store.put({"n": 1}, "agent")

        sqlite_store.get(address)
        sqlite_store.get(address)

        assert sqlite_store.cache.stats()["size"] == 1

    def test_stats(self, sqlite_store):
        target = sqlite_store.put({"n": 1}, "agent")
        sqlite_store.link(target, target, PROFILE_TAG, "agent")

        stats = sqlite_store.stats()

        assert stats["entries"] == 1
        assert stats["links"] == 1

    def test_sqlite_failure_becomes_store_error(self, sqlite_store, monkeypatch):
        def broken_connect():
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(sqlite_store, "_connect", broken_connect)

        with pytest.raises(StoreError) as excinfo:
            sqlite_store.put({"n": 1}, "agent")
        assert isinstance(excinfo.value.__cause__, sqlite3.OperationalError)

    def test_corrupt_tag_surfaces_as_store_error(self, sqlite_store):
        source = sqlite_store.address_of({"agent": "a"})
        with sqlite3.connect(sqlite_store.db_path) as conn:
            conn.execute(
                "INSERT INTO links (source, target, tag, author, timestamp) VALUES (?, ?, ?, ?, ?)",
                (source.hex, source.hex, b"\xc1", "a", 0.0),
            )

        with pytest.raises(StoreError):
            sqlite_store.links_from(source)

    def test_corrupt_entry_surfaces_as_store_error(self, sqlite_store):
        address = sqlite_store.address_of({"n": 1})
        with sqlite3.connect(sqlite_store.db_path) as conn:
            conn.execute(
                "INSERT INTO entries (address, author, timestamp, data) VALUES (?, ?, ?, ?)",
                (address.hex, "a", 0.0, b"\xc1"),
            )

        with pytest.raises(StoreError):
            sqlite_store.get(address)

    def test_cache_evicts_least_recently_read(self, tmp_path):
        backend = SqliteBackend(db_path=tmp_path / "small.db", cache_size=2)
        first = backend.put({"n": 1}, "agent")
        second = backend.put({"n": 2}, "agent")
        third = backend.put({"n": 3}, "agent")

        backend.get_many([first, second])
        backend.get(first)
        backend.get(third)

        found, missing = backend.cache.lookup([first, second, third])
        assert set(found) == {first, third}
        assert missing == [second]
