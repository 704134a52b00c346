"""PostgreSQL adapter: lets the relational backend speak sqlite3's dialect.

When DATABASE_URL starts with postgresql:// (a hosted Postgres such as the
school's managed instance), queries written for sqlite3 run unchanged:
  - ? placeholders → %s
  - executescript() → split and execute, tolerating "already exists"
  - INTEGER PRIMARY KEY AUTOINCREMENT → SERIAL PRIMARY KEY
  - rows come back as dict-like PgRow objects

Upserts are written as INSERT ... ON CONFLICT (...) DO UPDATE, which both
engines accept, so no statement rewriting is needed for them.
"""

from __future__ import annotations

import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_POSTGRES_SCHEMES = ("postgresql://", "postgres://")


class PgRow:
    """Dict-like row that mimics sqlite3.Row."""

    def __init__(self, columns: list[str], values: tuple):
        self._data = dict(zip(columns, values))

    def __getitem__(self, key: str | int) -> Any:
        if isinstance(key, int):
            return list(self._data.values())[key]
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> list[str]:
        return list(self._data.keys())

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def __repr__(self) -> str:
        return f"PgRow({self._data})"


def _translate_sql(sql: str) -> str:
    """Swap sqlite positional placeholders for psycopg2's."""
    return sql.replace("?", "%s")


def _translate_schema(sql: str) -> str:
    """Translate the SQLite DDL in database.SCHEMA to PostgreSQL DDL."""
    translated = re.sub(
        r"(\w+)\s+INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
        r"\1 SERIAL PRIMARY KEY",
        sql,
        flags=re.IGNORECASE,
    )
    return re.sub(r"PRAGMA\s+\w+\s*=\s*\w+\s*;?", "", translated, flags=re.IGNORECASE)


class PgCursorWrapper:
    """Wraps a psycopg2 cursor to match the sqlite3.Cursor calls we make."""

    def __init__(self, cursor):
        self._cursor = cursor

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount

    def execute(self, sql: str, params: tuple = ()) -> "PgCursorWrapper":
        self._cursor.execute(_translate_sql(sql), params)
        return self

    def _columns(self) -> list[str]:
        return [desc[0] for desc in self._cursor.description or ()]

    def fetchone(self) -> PgRow | None:
        row = self._cursor.fetchone()
        if row is None:
            return None
        return PgRow(self._columns(), row)

    def fetchall(self) -> list[PgRow]:
        if not self._cursor.description:
            return []
        columns = self._columns()
        return [PgRow(columns, row) for row in self._cursor.fetchall()]

    def close(self):
        self._cursor.close()


class PgConnectionWrapper:
    """Wraps a psycopg2 connection to match the sqlite3.Connection calls we make."""

    def __init__(self, conn):
        self._conn = conn
        self._conn.autocommit = False

    def execute(self, sql: str, params: tuple = ()) -> PgCursorWrapper:
        cursor = PgCursorWrapper(self._conn.cursor())
        return cursor.execute(sql, params)

    def executescript(self, sql: str) -> None:
        statements = [s.strip() for s in _translate_schema(sql).split(";") if s.strip()]
        cursor = self._conn.cursor()
        for stmt in statements:
            try:
                cursor.execute(stmt)
            except Exception as e:
                if "already exists" not in str(e).lower():
                    raise
                self._conn.rollback()
                logger.debug("Skipping schema statement: %s", e)
        cursor.close()

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def connect_pg(database_url: str) -> PgConnectionWrapper:
    """Open a PostgreSQL connection with the sqlite3-compatible surface."""
    try:
        import psycopg2
    except ImportError:
        raise ImportError(
            "psycopg2 is required for PostgreSQL support. "
            "Install it with: pip install psycopg2-binary"
        )

    return PgConnectionWrapper(psycopg2.connect(database_url))


def is_postgres_url(url: str) -> bool:
    return url.startswith(_POSTGRES_SCHEMES)
