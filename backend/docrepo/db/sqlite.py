"""SQLite connection handling for the document store."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

from docrepo.core.errors import ConfigurationError
from docrepo.core.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1
SCHEMA_PATH = Path(__file__).with_name("schema.sql")

_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA foreign_keys=ON",
    "PRAGMA busy_timeout=5000",
)


class SQLiteDatabase:
    """A single process-wide connection guarded by a re-entrant lock.

    Request threads share the connection, so every statement and every
    ``transaction()`` block runs under the lock; a unit of work is never
    interleaved with another thread's statements.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path.expanduser()
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def connect(self) -> sqlite3.Connection:
        with self._lock:
            if self._connection is None:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(self.db_path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                for pragma in _PRAGMAS:
                    conn.execute(pragma)
                self._connection = conn
            return self._connection

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def commit(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.commit()

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Cursor:
        with self._lock:
            return self.connect().execute(sql, params or [])

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
        with self._lock:
            return self.execute(sql, params).fetchall()

    def query_one(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Row | None:
        with self._lock:
            return self.execute(sql, params).fetchone()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """Commit on success, roll back on any exception (including cancellation)."""
        with self._lock:
            conn = self.connect()
            cursor = conn.cursor()
            try:
                yield cursor
                conn.commit()
            except BaseException:
                conn.rollback()
                raise
            finally:
                cursor.close()

    def ensure_schema(self, schema_sql: str | None = None) -> None:
        """Create tables, indexes, triggers and the FTS5 index if they are missing."""
        script = schema_sql if schema_sql is not None else SCHEMA_PATH.read_text(encoding="utf-8")
        with self._lock:
            conn = self.connect()
            try:
                conn.executescript(script)
            except sqlite3.OperationalError as exc:
                if "fts5" in str(exc).lower():
                    logger.error("SQLite at %s was built without FTS5", sqlite3.sqlite_version)
                    raise ConfigurationError("The SQLite library in use does not provide FTS5.") from exc
                raise
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version < SCHEMA_VERSION:
                conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
                conn.commit()
                logger.info("Initialised document schema v%s at %s", SCHEMA_VERSION, self.db_path)


def is_unique_violation(exc: sqlite3.IntegrityError) -> bool:
    """True when an IntegrityError came from a UNIQUE constraint or unique index."""
    return "UNIQUE constraint failed" in str(exc)


__all__ = ["SQLiteDatabase", "is_unique_violation", "SCHEMA_VERSION"]
