"""Tests for kv_store.py: InMemoryStore, JsonFileStore and RedisStore."""

from __future__ import annotations

import pytest

from errors import BackendRejected, BackendUnavailable
from kv_store import InMemoryStore, JsonFileStore, RedisStore, open_store


class TestInMemoryStore:
    def test_set_and_get(self):
        store = InMemoryStore()
        store.set("k", {"a": [1, 2]})
        assert store.get("k") == {"a": [1, 2]}

    def test_missing_key(self):
        assert InMemoryStore().get("nope") is None

    def test_values_are_copies(self):
        store = InMemoryStore()
        value = ["c1"]
        store.set("k", value)
        value.append("c2")
        got = store.get("k")
        got.append("c3")
        assert store.get("k") == ["c1"]

    def test_delete(self):
        store = InMemoryStore()
        store.set("k", 1)
        store.delete("k")
        store.delete("k")
        assert store.get("k") is None
        assert store.keys() == []


class TestJsonFileStore:
    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "store.json"
        JsonFileStore(path).set("school2026_courses", [{"id": "c1", "title": "한글"}])
        assert JsonFileStore(path).get("school2026_courses") == [{"id": "c1", "title": "한글"}]

    def test_creates_parent_directory(self, tmp_path):
        store = JsonFileStore(tmp_path / "nested" / "dir" / "store.json")
        store.set("k", "v")
        assert store.get("k") == "v"

    def test_corrupt_file_is_rejected_and_kept(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonFileStore(path)
        with pytest.raises(BackendRejected):
            store.get("k")
        with pytest.raises(BackendRejected):
            store.set("k", 1)
        assert path.read_text(encoding="utf-8") == "{not json"

    def test_truncated_file_keeps_other_users(self, tmp_path):
        from local_backend import LocalBackend
        from storage import StorageFacade

        path = tmp_path / "store.json"
        facade = StorageFacade(LocalBackend(JsonFileStore(path)))
        facade.login_or_create_user("s1", "Kim", "STUDENT")
        facade.set_course_completion("s1", "c1", True)
        content = path.read_bytes()
        path.write_bytes(content[:-5])

        with pytest.raises(BackendRejected):
            facade.login_or_create_user("s2", "Lee", "STUDENT")
        path.write_bytes(content)
        assert facade.list_completed_course_ids("s1") == {"c1"}

    def test_non_object_file_is_rejected(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(BackendRejected):
            JsonFileStore(path).get("k")

    def test_delete(self, tmp_path):
        store = JsonFileStore(tmp_path / "store.json")
        store.set("a", 1)
        store.set("b", 2)
        store.delete("a")
        assert store.get("a") is None
        assert store.get("b") == 2

    def test_unwritable_location_is_unavailable(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        store = JsonFileStore(blocker / "store.json")
        with pytest.raises(BackendUnavailable):
            store.set("k", 1)


class TestRedisStore:
    def test_round_trip(self, fake_redis):
        store = RedisStore(fake_redis)
        store.set("k", {"name": "김"})
        assert store.get("k") == {"name": "김"}
        store.delete("k")
        assert store.get("k") is None

    def test_connection_error_is_unavailable(self, down_redis):
        store = RedisStore(down_redis)
        with pytest.raises(BackendUnavailable) as exc:
            store.get("k")
        assert exc.value.operation == "get"

    def test_garbage_value_is_rejected(self, fake_redis):
        fake_redis.data["k"] = b"\xff not json"
        with pytest.raises(BackendRejected) as exc:
            RedisStore(fake_redis).get("k")
        assert exc.value.operation == "read"


class TestOpenStore:
    def test_memory(self):
        assert isinstance(open_store("memory://"), InMemoryStore)
        assert isinstance(open_store(""), InMemoryStore)

    def test_file_path(self, tmp_path):
        assert isinstance(open_store(str(tmp_path / "s.json")), JsonFileStore)

    def test_redis_url(self, monkeypatch, fake_redis):
        import redis
        monkeypatch.setattr(redis.Redis, "from_url", classmethod(lambda cls, url, **kw: fake_redis))
        store = open_store("redis://localhost:6379/0")
        assert isinstance(store, RedisStore)
        store.set("k", 1)
        assert fake_redis.data["k"] == b"1"
