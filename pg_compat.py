"""PostgreSQL compatibility layer — wraps psycopg2 to match the sqlite3 API.

The SQL storage adapter writes one dialect of SQL. When the configured
database is a postgresql:// URL, this module provides a connection wrapper
that translates:
  - ? placeholders → %s
  - INSERT statements → INSERT ... RETURNING id (so lastrowid works)
  - executescript() → split and execute, AUTOINCREMENT → SERIAL
  - Row factory → dict-like Row objects
and adapts Python dicts/lists for JSONB columns.
"""

from __future__ import annotations

import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_INSERT = re.compile(r"^\s*INSERT\s+INTO\s+\w+", re.IGNORECASE)


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
    """Translate SQLite-flavoured SQL to PostgreSQL SQL."""
    translated = sql.replace("?", "%s")

    if _INSERT.match(translated) and "RETURNING" not in translated.upper():
        translated = translated.rstrip().rstrip(";") + " RETURNING id"

    return translated


def _translate_schema(sql: str) -> str:
    """Translate SQLite schema DDL to PostgreSQL DDL."""
    translated = re.sub(
        r"(\w+)\s+INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
        r"\1 SERIAL PRIMARY KEY",
        sql,
        flags=re.IGNORECASE,
    )
    translated = re.sub(r"PRAGMA\s+\w+\s*=\s*\w+\s*;?", "", translated, flags=re.IGNORECASE)
    return translated


def json_param(value: Any) -> Any:
    """Adapt a dict/list so psycopg2 sends it as a JSON document."""
    from psycopg2.extras import Json

    if value is None:
        return None
    return Json(value)


class PgCursorWrapper:
    """Wraps a psycopg2 cursor to match the sqlite3.Cursor interface."""

    def __init__(self, cursor):
        self._cursor = cursor
        self._last_id: int | None = None
        self._pending: tuple | None = None

    @property
    def lastrowid(self) -> int | None:
        return self._last_id

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount

    @property
    def description(self):
        return self._cursor.description

    def execute(self, sql: str, params: tuple = ()) -> "PgCursorWrapper":
        translated = _translate_sql(sql)
        self._last_id = None
        self._pending = None

        self._cursor.execute(translated, params)
        if translated.rstrip().upper().endswith("RETURNING ID"):
            row = self._cursor.fetchone()
            if row:
                self._last_id = row[0]
                self._pending = row
        return self

    def _columns(self) -> list[str]:
        return [desc[0] for desc in self._cursor.description or ()]

    def fetchone(self) -> PgRow | None:
        if self._pending is not None:
            row, self._pending = self._pending, None
        else:
            row = self._cursor.fetchone()
        if row is None:
            return None
        return PgRow(self._columns(), row)

    def fetchall(self) -> list[PgRow]:
        rows = self._cursor.fetchall()
        if not rows or not self._cursor.description:
            return []
        columns = self._columns()
        return [PgRow(columns, row) for row in rows]

    def close(self):
        self._cursor.close()


class PgConnectionWrapper:
    """Wraps a psycopg2 connection to match the sqlite3.Connection interface."""

    def __init__(self, conn):
        self._conn = conn
        self._conn.autocommit = False

    def execute(self, sql: str, params: tuple = ()) -> PgCursorWrapper:
        cursor = PgCursorWrapper(self._conn.cursor())
        cursor.execute(sql, params)
        return cursor

    def executescript(self, sql: str) -> None:
        """Execute multiple DDL statements in one transaction."""
        translated = _translate_schema(sql)
        statements = [s.strip() for s in translated.split(";") if s.strip()]
        cursor = self._conn.cursor()
        try:
            for stmt in statements:
                logger.debug("Applying DDL: %s", stmt.splitlines()[0])
                cursor.execute(stmt)
        finally:
            cursor.close()

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()

    def cursor(self):
        return PgCursorWrapper(self._conn.cursor())


def connect_pg(database_url: str) -> PgConnectionWrapper:
    """Create a PostgreSQL connection with a sqlite3-compatible interface."""
    import psycopg2

    conn = psycopg2.connect(database_url)
    return PgConnectionWrapper(conn)


def is_postgres_url(url: str) -> bool:
    """Check if a database URL is a PostgreSQL URL."""
    return url.startswith("postgresql://") or url.startswith("postgres://")
