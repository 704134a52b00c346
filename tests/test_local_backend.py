"""Key layout and index behaviour of the key-value LocalBackend."""

from __future__ import annotations

import pytest

from errors import BackendRejected
from kv_store import InMemoryStore
from local_backend import LocalBackend
from models import Challenge, Course, SchoolClass, User, UserRole


def _backend(prefix="school2026_"):
    store = InMemoryStore()
    return store, LocalBackend(store, prefix=prefix)


class TestKeys:
    def test_key_layout(self):
        _, backend = _backend()
        assert backend.key("challenges", "st1") == "school2026_challenges_st1"
        assert backend.users_index_key == "school2026_all_users"
        assert backend.courses_key == "school2026_courses"

    def test_ids_are_percent_encoded(self):
        _, backend = _backend()
        assert backend.key("user", "a_b/c") == "school2026_user_a_b%2Fc"
        assert backend.key("user", "a b") == "school2026_user_a%20b"

    def test_entity_is_first_segment(self):
        _, backend = _backend()
        # Entity names have no underscore, so the id always starts after the first one
        assert backend.key("progress", "x_y") != backend.key("progress", "x")
        assert backend.key("owner", "1") != backend.key("user", "1")

    def test_custom_prefix(self):
        store, backend = _backend(prefix="test_")
        backend.upsert_user(User("s1", "Kim"))
        assert store.get("test_user_s1")["name"] == "Kim"
        assert store.get("test_all_users") == ["s1"]


class TestIndexes:
    def test_user_index_has_no_duplicates(self):
        store, backend = _backend()
        backend.upsert_user(User("s1", "Kim"))
        backend.upsert_user(User("s1", "Kim", UserRole.TEACHER))
        backend.set_course_completion("s1", "c1", True)
        assert store.get("school2026_all_users") == ["s1"]

    def test_owner_index_written_and_cleared(self):
        store, backend = _backend()
        backend.upsert_challenge("A", Challenge(id="x", title="t"))
        assert store.get("school2026_owner_x") == "A"
        backend.delete_challenge("x")
        assert store.get("school2026_owner_x") is None

    def test_upsert_moves_challenge_between_owners(self):
        _, backend = _backend()
        backend.upsert_challenge("A", Challenge(id="x", title="t"))
        backend.upsert_challenge("B", Challenge(id="x", title="t"))
        assert backend.list_challenges("A") == []
        assert [c.id for c in backend.list_challenges("B")] == ["x"]

    def test_delete_without_reverse_index_scans_users(self):
        store, backend = _backend()
        backend.upsert_challenge("A", Challenge(id="x", title="t"))
        store.delete("school2026_owner_x")
        backend.delete_challenge("x")
        assert backend.list_challenges("A") == []


class TestCatalog:
    def test_new_courses_are_prepended(self):
        store, backend = _backend()
        backend.add_course(Course("1", "first", "수학"))
        backend.add_course(Course("2", "second", "영어"))
        assert [c["id"] for c in store.get("school2026_courses")] == ["2", "1"]

    def test_completion_count_is_not_stored(self):
        store, backend = _backend()
        backend.add_course(Course("1", "first", "수학", completion_count=7))
        assert "completion_count" not in store.get("school2026_courses")[0]
        assert backend.list_courses()[0].completion_count == 0

    def test_completion_count_counts_distinct_users(self):
        _, backend = _backend()
        backend.add_course(Course("1", "first", "수학"))
        backend.set_course_completion("a", "1", True)
        backend.set_course_completion("b", "1", True)
        backend.set_course_completion("b", "1", True)
        assert backend.list_courses()[0].completion_count == 2

    def test_wrong_shape_catalog_is_rejected(self):
        store, backend = _backend()
        store.set("school2026_courses", {"not": "a list"})
        with pytest.raises(BackendRejected):
            backend.list_courses()
        with pytest.raises(BackendRejected):
            backend.add_course(Course("1", "first", "수학"))
        assert store.get("school2026_courses") == {"not": "a list"}


class TestClassRecords:
    def _class(self, code="MAT000001", teacher="t1"):
        return SchoolClass(id="1", name="1반", subject="math", code=code, teacher_id=teacher)

    def test_class_and_membership_keys(self):
        store, backend = _backend()
        backend.add_class(self._class())
        backend.add_class_member("1", "s1", "2026-03-02T09:00:00")
        assert store.get("school2026_class_1")["code"] == "MAT000001"
        assert "student_count" not in store.get("school2026_class_1")
        assert store.get("school2026_classcode_MAT000001") == "1"
        assert store.get("school2026_teacherclasses_t1") == ["1"]
        assert store.get("school2026_classroster_1") == ["s1"]
        assert store.get("school2026_classmembers_s1") == [
            {"class_id": "1", "joined_at": "2026-03-02T09:00:00"},
        ]
        assert store.get("school2026_all_users") == ["s1"]

    def test_changed_code_and_teacher_drop_stale_entries(self):
        store, backend = _backend()
        backend.add_class(self._class())
        backend.add_class(self._class(code="MAT000099", teacher="t2"))
        assert store.get("school2026_classcode_MAT000001") is None
        assert backend.find_class_by_code("MAT000099").teacher_id == "t2"
        assert store.get("school2026_teacherclasses_t1") == []
        assert [c.id for c in backend.list_classes_by_teacher("t2")] == ["1"]

    def test_member_added_once(self):
        store, backend = _backend()
        backend.add_class(self._class())
        backend.add_class_member("1", "s1", "2026-03-02T09:00:00")
        backend.add_class_member("1", "s1", "2026-03-03T09:00:00")
        assert store.get("school2026_classroster_1") == ["s1"]
        assert len(store.get("school2026_classmembers_s1")) == 1
