"""
Relational storage backend: the remote database (PostgreSQL) or a SQLite file.

Each facade operation maps onto one or two parameterized statements against
the tables in database.SCHEMA. Driver errors never leave this module raw:
connection-level failures become BackendUnavailable, everything the server
refused becomes BackendRejected.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from errors import BackendRejected, BackendUnavailable, StorageError
from models import (
    Challenge,
    ChallengeEffort,
    Course,
    GrowthEntry,
    HandwritingLog,
    Reflection,
    SchoolClass,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)

_UNAVAILABLE_ERRORS = {"OperationalError", "InterfaceError"}

# sqlite3 raises these as OperationalError; PostgreSQL as ProgrammingError.
_SCHEMA_ERROR_MARKERS = ("no such table", "no such column", "has no column named")


def driver_errors() -> tuple[type[BaseException], ...]:
    errors: list[type[BaseException]] = [sqlite3.Error, OSError]
    try:
        import psycopg2
        errors.append(psycopg2.Error)
    except ImportError:
        pass
    return tuple(errors)


def translate_error(exc: BaseException, operation: str) -> StorageError:
    """Classify a DB-API / socket error into the facade's error kinds."""
    message = str(exc).lower()
    if any(marker in message for marker in _SCHEMA_ERROR_MARKERS):
        return BackendRejected(str(exc), operation)
    if isinstance(exc, OSError) or any(
        cls.__name__ in _UNAVAILABLE_ERRORS for cls in type(exc).__mro__
    ):
        return BackendUnavailable(str(exc), operation)
    return BackendRejected(str(exc), operation)


class RelationalBackend:
    """StorageBackend over a sqlite3-compatible connection."""

    name = "relational"

    def __init__(self, connect: Callable | None = None):
        if connect is None:
            from database import get_db
            connect = get_db
        self._connect = connect
        self._errors = driver_errors()

    @contextmanager
    def _session(self, operation: str, write: bool = False):
        db = None
        try:
            db = self._connect()
            yield db
            if write:
                db.commit()
        except StorageError:
            raise
        except self._errors as exc:
            if db is not None:
                try:
                    db.rollback()
                except self._errors as rollback_exc:
                    logger.debug("Rollback after %s failed: %s", operation, rollback_exc)
            logger.warning("Relational %s failed: %s", operation, exc)
            raise translate_error(exc, operation) from exc

    # ── Users ───────────────────────────────────────────────

    def upsert_user(self, user: User) -> User:
        with self._session("upsert_user", write=True) as db:
            db.execute(
                "INSERT INTO users (id, name, role) VALUES (?, ?, ?) "
                "ON CONFLICT (id) DO UPDATE SET name = excluded.name, role = excluded.role",
                (user.id, user.name, user.role.value),
            )
        return user

    # ── Courses ─────────────────────────────────────────────

    def list_courses(self) -> list[Course]:
        with self._session("list_courses") as db:
            rows = db.execute(
                "SELECT c.id, c.title, c.subject, c.duration, c.thumbnail, c.video_url, "
                "COUNT(p.user_id) AS completion_count "
                "FROM courses c "
                "LEFT JOIN course_progress p ON p.course_id = c.id AND p.completed = 1 "
                "GROUP BY c.id, c.title, c.subject, c.duration, c.thumbnail, c.video_url"
            ).fetchall()
        return [
            Course(
                id=r["id"],
                title=r["title"],
                subject=r["subject"],
                duration=r["duration"],
                thumbnail=r["thumbnail"],
                video_url=r["video_url"] or "",
                completion_count=int(r["completion_count"]),
            )
            for r in rows
        ]

    def add_course(self, course: Course) -> None:
        with self._session("add_course", write=True) as db:
            db.execute(
                "INSERT INTO courses (id, title, subject, duration, thumbnail, video_url) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT (id) DO UPDATE SET title = excluded.title, subject = excluded.subject, "
                "duration = excluded.duration, thumbnail = excluded.thumbnail, "
                "video_url = excluded.video_url",
                (course.id, course.title, course.subject, course.duration,
                 course.thumbnail, course.video_url),
            )

    def remove_course(self, course_id: str) -> None:
        with self._session("remove_course", write=True) as db:
            db.execute("DELETE FROM course_progress WHERE course_id = ?", (course_id,))
            db.execute("DELETE FROM courses WHERE id = ?", (course_id,))

    def list_completed_course_ids(self, user_id: str) -> set[str]:
        with self._session("list_completed_course_ids") as db:
            rows = db.execute(
                "SELECT course_id FROM course_progress WHERE user_id = ? AND completed = 1",
                (user_id,),
            ).fetchall()
        return {r["course_id"] for r in rows}

    def set_course_completion(self, user_id: str, course_id: str, completed: bool) -> None:
        with self._session("set_course_completion", write=True) as db:
            if completed:
                db.execute(
                    "INSERT INTO course_progress (user_id, course_id, completed) VALUES (?, ?, 1) "
                    "ON CONFLICT (user_id, course_id) DO UPDATE SET completed = 1",
                    (user_id, course_id),
                )
            else:
                db.execute(
                    "DELETE FROM course_progress WHERE user_id = ? AND course_id = ?",
                    (user_id, course_id),
                )

    # ── Challenges ──────────────────────────────────────────

    def list_challenges(self, user_id: str) -> list[Challenge]:
        with self._session("list_challenges") as db:
            rows = db.execute(
                "SELECT id, title, description, days_total, days_completed, badge_icon, color "
                "FROM challenges WHERE user_id = ? ORDER BY created_at, id",
                (user_id,),
            ).fetchall()
        return [
            Challenge(
                id=r["id"],
                title=r["title"],
                description=r["description"],
                days_total=r["days_total"],
                days_completed=r["days_completed"],
                badge_icon=r["badge_icon"],
                color=r["color"],
            )
            for r in rows
        ]

    def upsert_challenge(self, user_id: str, challenge: Challenge) -> None:
        with self._session("upsert_challenge", write=True) as db:
            db.execute(
                "INSERT INTO challenges (id, user_id, title, description, days_total, "
                "days_completed, badge_icon, color, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT (id) DO UPDATE SET user_id = excluded.user_id, "
                "title = excluded.title, description = excluded.description, "
                "days_total = excluded.days_total, days_completed = excluded.days_completed, "
                "badge_icon = excluded.badge_icon, color = excluded.color",
                (challenge.id, user_id, challenge.title, challenge.description,
                 challenge.days_total, challenge.days_completed, challenge.badge_icon,
                 challenge.color, datetime.now().isoformat()),
            )

    def delete_challenge(self, challenge_id: str) -> None:
        with self._session("delete_challenge", write=True) as db:
            db.execute("DELETE FROM challenges WHERE id = ?", (challenge_id,))

    # ── Reflections ─────────────────────────────────────────

    def get_reflection(self, user_id: str) -> Reflection:
        with self._session("get_reflection") as db:
            row = db.execute(
                "SELECT reflection, feedback FROM reflections WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            return Reflection()
        return Reflection(text=row["reflection"] or "", feedback=row["feedback"])

    def upsert_reflection(self, user_id: str, reflection: Reflection) -> None:
        with self._session("upsert_reflection", write=True) as db:
            db.execute(
                "INSERT INTO reflections (user_id, reflection, feedback) VALUES (?, ?, ?) "
                "ON CONFLICT (user_id) DO UPDATE SET reflection = excluded.reflection, "
                "feedback = excluded.feedback",
                (user_id, reflection.text, reflection.feedback),
            )

    # ── Handwriting ─────────────────────────────────────────

    def list_handwriting_logs(self, user_id: str) -> list[HandwritingLog]:
        with self._session("list_handwriting_logs") as db:
            rows = db.execute(
                "SELECT id, user_id, phrase, created_at FROM handwriting_logs "
                "WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (user_id,),
            ).fetchall()
        return [
            HandwritingLog(id=str(r["id"]), user_id=r["user_id"], phrase=r["phrase"],
                           created_at=r["created_at"])
            for r in rows
        ]

    def append_handwriting_log(self, user_id: str, phrase: str) -> HandwritingLog:
        created_at = datetime.now().isoformat()
        with self._session("append_handwriting_log", write=True) as db:
            rows = db.execute(
                "INSERT INTO handwriting_logs (user_id, phrase, created_at) "
                "VALUES (?, ?, ?) RETURNING id",
                (user_id, phrase, created_at),
            ).fetchall()
        return HandwritingLog(id=str(rows[0]["id"]), user_id=user_id, phrase=phrase,
                              created_at=created_at)

    # ── Aggregates ──────────────────────────────────────────

    def challenge_effort(self) -> list[ChallengeEffort]:
        with self._session("challenge_effort") as db:
            rows = db.execute(
                "SELECT u.id, u.name, COALESCE(SUM(c.days_completed), 0) AS total_days, "
                "COUNT(c.id) AS challenge_count "
                "FROM users u LEFT JOIN challenges c ON c.user_id = u.id "
                "WHERE u.role = ? GROUP BY u.id, u.name",
                (UserRole.STUDENT.value,),
            ).fetchall()
        return [
            ChallengeEffort(
                user_id=r["id"],
                display_name=r["name"],
                total_completed_days=int(r["total_days"]),
                challenge_count=int(r["challenge_count"]),
            )
            for r in rows
        ]

    def growth(self) -> list[GrowthEntry]:
        with self._session("growth") as db:
            rows = db.execute(
                "SELECT u.id, u.name, "
                "(SELECT COUNT(*) FROM course_progress p "
                " WHERE p.user_id = u.id AND p.completed = 1) AS course_count, "
                "COALESCE(r.reflection, '') AS reflection "
                "FROM users u LEFT JOIN reflections r ON r.user_id = u.id "
                "WHERE u.role = ?",
                (UserRole.STUDENT.value,),
            ).fetchall()
        return [
            GrowthEntry(
                user_id=r["id"],
                display_name=r["name"],
                course_completion_count=int(r["course_count"]),
                reflection_text=r["reflection"],
            )
            for r in rows
        ]

    # ── Classes ─────────────────────────────────────────────

    @staticmethod
    def _class_from_row(r) -> SchoolClass:
        return SchoolClass(
            id=r["id"],
            name=r["name"],
            subject=r["subject"],
            code=r["code"],
            teacher_id=r["teacher_id"],
            created_at=r["created_at"],
            student_count=int(r["student_count"]),
        )

    def add_class(self, school_class: SchoolClass) -> None:
        with self._session("add_class", write=True) as db:
            db.execute(
                "INSERT INTO classes (id, name, subject, code, teacher_id, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT (id) DO UPDATE SET name = excluded.name, subject = excluded.subject, "
                "code = excluded.code, teacher_id = excluded.teacher_id",
                (school_class.id, school_class.name, school_class.subject, school_class.code,
                 school_class.teacher_id, school_class.created_at),
            )

    def find_class_by_code(self, code: str) -> Optional[SchoolClass]:
        with self._session("find_class_by_code") as db:
            row = db.execute(
                "SELECT c.id, c.name, c.subject, c.code, c.teacher_id, c.created_at, "
                "(SELECT COUNT(*) FROM class_students s WHERE s.class_id = c.id) AS student_count "
                "FROM classes c WHERE c.code = ?",
                (code,),
            ).fetchone()
        return self._class_from_row(row) if row else None

    def is_class_member(self, class_id: str, student_id: str) -> bool:
        with self._session("is_class_member") as db:
            row = db.execute(
                "SELECT 1 FROM class_students WHERE class_id = ? AND student_id = ?",
                (class_id, student_id),
            ).fetchone()
        return row is not None

    def add_class_member(self, class_id: str, student_id: str, joined_at: str) -> None:
        with self._session("add_class_member", write=True) as db:
            db.execute(
                "INSERT INTO class_students (class_id, student_id, joined_at) VALUES (?, ?, ?) "
                "ON CONFLICT (class_id, student_id) DO NOTHING",
                (class_id, student_id, joined_at),
            )

    def list_classes_by_teacher(self, teacher_id: str) -> list[SchoolClass]:
        with self._session("list_classes_by_teacher") as db:
            rows = db.execute(
                "SELECT c.id, c.name, c.subject, c.code, c.teacher_id, c.created_at, "
                "(SELECT COUNT(*) FROM class_students s WHERE s.class_id = c.id) AS student_count "
                "FROM classes c WHERE c.teacher_id = ?",
                (teacher_id,),
            ).fetchall()
        return [self._class_from_row(r) for r in rows]

    def list_classes_for_student(self, student_id: str) -> list[SchoolClass]:
        with self._session("list_classes_for_student") as db:
            rows = db.execute(
                "SELECT c.id, c.name, c.subject, c.code, c.teacher_id, c.created_at, "
                "(SELECT COUNT(*) FROM class_students s2 WHERE s2.class_id = c.id) AS student_count, "
                "COALESCE(u.name, '') AS teacher_name, s.joined_at "
                "FROM class_students s "
                "JOIN classes c ON c.id = s.class_id "
                "LEFT JOIN users u ON u.id = c.teacher_id "
                "WHERE s.student_id = ?",
                (student_id,),
            ).fetchall()
        classes = []
        for r in rows:
            school_class = self._class_from_row(r)
            school_class.teacher_name = r["teacher_name"]
            school_class.joined_at = r["joined_at"]
            classes.append(school_class)
        return classes

    # ── Shared settings ─────────────────────────────────────

    def get_config(self, key: str) -> Optional[str]:
        with self._session("get_config") as db:
            row = db.execute("SELECT value FROM app_config WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_config(self, key: str, value: str) -> None:
        with self._session("set_config", write=True) as db:
            db.execute(
                "INSERT INTO app_config (key, value) VALUES (?, ?) "
                "ON CONFLICT (key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
