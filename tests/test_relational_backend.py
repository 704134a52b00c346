"""RelationalBackend on SQLite: error translation and row mapping."""

from __future__ import annotations

import sqlite3

import pytest

from errors import BackendRejected, BackendUnavailable
from models import Challenge, Course, User
from relational_backend import RelationalBackend, translate_error


class TestTranslateError:
    def test_operational_error_is_unavailable(self):
        err = translate_error(sqlite3.OperationalError("database is locked"), "list_courses")
        assert isinstance(err, BackendUnavailable)
        assert err.operation == "list_courses"

    def test_socket_error_is_unavailable(self):
        assert isinstance(translate_error(ConnectionRefusedError("refused"), "x"), BackendUnavailable)

    def test_integrity_error_is_rejected(self):
        assert isinstance(translate_error(sqlite3.IntegrityError("NOT NULL"), "x"), BackendRejected)

    def test_programming_error_is_rejected(self):
        assert isinstance(translate_error(sqlite3.ProgrammingError("bad"), "x"), BackendRejected)

    @pytest.mark.parametrize("exc", [
        sqlite3.OperationalError("no such table: challenges"),
        sqlite3.OperationalError("table courses has no column named video_url"),
        sqlite3.ProgrammingError('relation "challenges" does not exist'),
    ])
    def test_schema_errors_are_rejected_on_both_engines(self, exc):
        assert isinstance(translate_error(exc, "list_challenges"), BackendRejected)


class TestFailures:
    def test_connect_failure_is_unavailable(self):
        def refuse():
            raise sqlite3.OperationalError("unable to open database file")

        backend = RelationalBackend(connect=refuse)
        with pytest.raises(BackendUnavailable):
            backend.list_courses()

    def test_missing_table_is_rejected(self, tmp_path):
        conn = sqlite3.connect(str(tmp_path / "empty.db"))
        conn.row_factory = sqlite3.Row
        backend = RelationalBackend(connect=lambda: conn)
        with pytest.raises(BackendRejected):
            backend.list_challenges("s1")
        conn.close()

    def test_rejected_write_is_rolled_back(self, sqlite_conn, relational_backend):
        sqlite_conn.execute("CREATE TRIGGER no_bad BEFORE INSERT ON courses "
                            "WHEN NEW.title = 'bad' BEGIN SELECT RAISE(ABORT, 'rejected'); END")
        sqlite_conn.commit()
        with pytest.raises(BackendRejected):
            relational_backend.add_course(Course("c1", "bad", "수학"))
        assert relational_backend.list_courses() == []


class TestRows:
    def test_user_upsert_keeps_single_row(self, sqlite_conn, relational_backend):
        relational_backend.upsert_user(User("s1", "Kim"))
        relational_backend.upsert_user(User("s1", "Kim Updated"))
        rows = sqlite_conn.execute("SELECT id, name FROM users").fetchall()
        assert [(r["id"], r["name"]) for r in rows] == [("s1", "Kim Updated")]

    def test_challenge_keeps_insertion_order(self, relational_backend):
        relational_backend.upsert_challenge("A", Challenge(id="b", title="second"))
        relational_backend.upsert_challenge("A", Challenge(id="a", title="first"))
        relational_backend.upsert_challenge("A", Challenge(id="b", title="second", days_completed=3))
        assert [c.id for c in relational_backend.list_challenges("A")] == ["b", "a"]

    def test_handwriting_ids_are_strings(self, relational_backend):
        entry = relational_backend.append_handwriting_log("s1", "문장")
        assert isinstance(entry.id, str)
        assert relational_backend.list_handwriting_logs("s1")[0].id == entry.id
