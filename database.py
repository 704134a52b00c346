"""
Relational database layer for the learning tracker.

Uses raw sqlite3 (WAL mode, parameterized queries) or PostgreSQL through
pg_compat when DATABASE starts with postgresql://. A schema_version table
tracks the versioned migrations below.
"""

from __future__ import annotations

import fcntl
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from flask import current_app, g

from pg_compat import connect_pg, is_postgres_url

logger = logging.getLogger(__name__)


SCHEMA = """
-- Migration tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL,
    applied_at TEXT NOT NULL
);

-- Users (id doubles as the login handle)
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    role TEXT NOT NULL DEFAULT 'STUDENT'
);

-- Shared course catalog
CREATE TABLE IF NOT EXISTS courses (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    subject TEXT NOT NULL DEFAULT '',
    duration TEXT NOT NULL DEFAULT '05:00',
    thumbnail TEXT NOT NULL DEFAULT '',
    video_url TEXT NOT NULL DEFAULT ''
);

-- Presence of a completed row = course finished by that user
CREATE TABLE IF NOT EXISTS course_progress (
    user_id TEXT NOT NULL,
    course_id TEXT NOT NULL,
    completed INTEGER NOT NULL DEFAULT 1,
    PRIMARY KEY (user_id, course_id)
);
CREATE INDEX IF NOT EXISTS idx_progress_course ON course_progress(course_id);

-- GodSaeng habit challenges
CREATE TABLE IF NOT EXISTS challenges (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    days_total INTEGER NOT NULL DEFAULT 30,
    days_completed INTEGER NOT NULL DEFAULT 0,
    badge_icon TEXT NOT NULL DEFAULT '',
    color TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_challenges_user ON challenges(user_id);

-- One growth reflection per user, last write wins
CREATE TABLE IF NOT EXISTS reflections (
    user_id TEXT PRIMARY KEY,
    reflection TEXT NOT NULL DEFAULT '',
    feedback TEXT
);

-- Weekly handwriting ritual, append-only
CREATE TABLE IF NOT EXISTS handwriting_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    phrase TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT ''
);

-- Teacher classes, joined by code
CREATE TABLE IF NOT EXISTS classes (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    subject TEXT NOT NULL DEFAULT '',
    code TEXT UNIQUE NOT NULL,
    teacher_id TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_classes_teacher ON classes(teacher_id);

CREATE TABLE IF NOT EXISTS class_students (
    class_id TEXT NOT NULL,
    student_id TEXT NOT NULL,
    joined_at TEXT NOT NULL DEFAULT '',
    PRIMARY KEY (class_id, student_id)
);
CREATE INDEX IF NOT EXISTS idx_class_students_student ON class_students(student_id);

-- Shared settings (teacher spreadsheet URL, ...)
CREATE TABLE IF NOT EXISTS app_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL DEFAULT ''
);
"""


MIGRATIONS: list[tuple[int, str]] = [
    # Migration 2: newest-first handwriting reads per user
    (2, """
        CREATE INDEX IF NOT EXISTS idx_handwriting_user_created
            ON handwriting_logs(user_id, created_at);
    """),
]


def get_db():
    """Return a DB connection from Flask g, creating if needed.

    Supports both SQLite (default) and PostgreSQL (when DATABASE starts
    with postgresql:// or postgres://).
    """
    if "db" not in g:
        db_url = current_app.config["DATABASE"]
        if is_postgres_url(db_url):
            g.db = connect_pg(db_url)
            return g.db

        g.db = sqlite3.connect(db_url)
        g.db.row_factory = sqlite3.Row
        g.db.execute("PRAGMA journal_mode=WAL")
    return g.db


def close_db(e=None) -> None:
    """Teardown handler: close DB connection."""
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db() -> None:
    """Execute schema DDL to create all tables."""
    db = get_db()
    db.executescript(SCHEMA)
    db.commit()


def run_migrations() -> None:
    """Apply any unapplied versioned migrations.

    SQLite runs take a file lock so concurrent workers don't race on startup.
    """
    db_url = current_app.config["DATABASE"]
    lock_file = None

    if not is_postgres_url(db_url):
        lock_path = Path(db_url).with_suffix(".migration.lock")
        try:
            lock_file = open(lock_path, "w")
            fcntl.flock(lock_file, fcntl.LOCK_EX)
        except OSError:
            lock_file = None

    try:
        db = get_db()
        applied = {
            row["version"]
            for row in db.execute("SELECT version FROM schema_version").fetchall()
        }
        if 1 not in applied:
            db.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (1, ?)",
                (datetime.now().isoformat(),),
            )
        for version, sql in MIGRATIONS:
            if version in applied:
                continue
            db.executescript(sql)
            db.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (version, datetime.now().isoformat()),
            )
        db.commit()
    finally:
        if lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_UN)
            lock_file.close()


def ensure_schema() -> None:
    """Create tables and apply migrations once per app."""
    app = current_app._get_current_object()
    if getattr(app, "_db_initialized", False):
        return
    init_db()
    run_migrations()
    app._db_initialized = True


def init_app(app) -> None:
    """Register teardown and create the schema on first request."""
    app.teardown_appcontext(close_db)

    @app.before_request
    def _ensure_db():
        from relational_backend import driver_errors
        try:
            ensure_schema()
        except driver_errors() as e:
            # Routes still run; their storage calls report the outage and
            # login falls back to local storage.
            logger.warning("Schema check skipped, database unreachable: %s", e)
