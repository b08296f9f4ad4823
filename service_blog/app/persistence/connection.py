"""
Relational store connection for the blog.

Wraps a DB-API 2.0 driver connection (sqlite3 or psycopg2) behind the
small surface the query layer needs: positional-parameter execution,
last inserted id, and explicit begin/commit/rollback.
"""

import sqlite3
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

import psycopg2

from shared.logging import get_logger
from shared.errors import StoreError


@dataclass(frozen=True)
class Dialect:
    """Per-driver SQL differences the query layer has to respect."""
    name: str
    placeholder: str
    primary_key: str
    insert_returning: bool


SQLITE = Dialect(
    name="sqlite",
    placeholder="?",
    primary_key="INTEGER PRIMARY KEY AUTOINCREMENT",
    insert_returning=False,
)

POSTGRES = Dialect(
    name="postgresql",
    placeholder="%s",
    primary_key="SERIAL PRIMARY KEY",
    insert_returning=True,
)


class StatementResult:
    """Materialized result of one executed statement."""

    def __init__(self, columns: List[str], rows: List[Sequence[Any]], rowcount: int,
                 lastrowid: Optional[Any] = None):
        self.columns = columns
        self.rows = rows
        self.rowcount = rowcount
        self.lastrowid = lastrowid

    def fetchall(self) -> List[Dict[str, Any]]:
        return [dict(zip(self.columns, row)) for row in self.rows]

    def fetchone(self) -> Optional[Dict[str, Any]]:
        if not self.rows:
            return None
        return dict(zip(self.columns, self.rows[0]))

    def scalar(self) -> Any:
        if not self.rows:
            return None
        return self.rows[0][0]

    def column(self) -> List[Any]:
        return [row[0] for row in self.rows]


class StoreConnection:
    """DB-API connection adapter with explicit transaction control."""

    def __init__(self, raw, dialect: Dialect, driver_error: type):
        self.raw = raw
        self.dialect = dialect
        self._driver_error = driver_error
        self._last_insert_id: Optional[Any] = None
        self.in_transaction = False
        self.logger = get_logger("blog.store.connection")

    def execute(self, sql: str, params: Sequence[Any] = ()) -> StatementResult:
        """Execute one statement with positional bound parameters."""
        cursor = self.raw.cursor()
        try:
            cursor.execute(sql, tuple(params))
            columns = [d[0] for d in cursor.description] if cursor.description else []
            rows = cursor.fetchall() if cursor.description else []
            result = StatementResult(columns, rows, cursor.rowcount, cursor.lastrowid)
        except self._driver_error as e:
            self.logger.error("Statement failed", dialect=self.dialect.name, error=str(e))
            raise StoreError("execute", str(e)) from e
        finally:
            cursor.close()

        if result.lastrowid:
            self._last_insert_id = result.lastrowid
        return result

    def record_insert_id(self, value: Any):
        self._last_insert_id = value

    def last_insert_id(self) -> Optional[Any]:
        return self._last_insert_id

    def begin(self):
        if self.in_transaction:
            raise StoreError("begin", "Transaction already active")
        self.execute("BEGIN")
        self.in_transaction = True

    def commit(self):
        try:
            self.execute("COMMIT")
        finally:
            self.in_transaction = False

    def rollback(self):
        try:
            self.execute("ROLLBACK")
        finally:
            self.in_transaction = False

    def close(self):
        try:
            self.raw.close()
        except self._driver_error as e:
            self.logger.warning("Error closing connection", error=str(e))


def connect(database_url: str) -> StoreConnection:
    """Open a store connection for a ``sqlite:///`` or ``postgresql://`` URL."""
    logger = get_logger("blog.store.connection")
    parsed = urlparse(database_url)

    try:
        if parsed.scheme == "sqlite":
            # sqlite:///relative.db, sqlite:////abs/path.db, sqlite:///:memory:
            path = database_url[len("sqlite:///"):] or ":memory:"
            raw = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
            return StoreConnection(raw, SQLITE, sqlite3.Error)

        if parsed.scheme in ("postgres", "postgresql"):
            raw = psycopg2.connect(database_url)
            raw.autocommit = True
            return StoreConnection(raw, POSTGRES, psycopg2.Error)

    except (sqlite3.Error, psycopg2.Error) as e:
        logger.error("Database connection failed", scheme=parsed.scheme, error=str(e))
        raise StoreError("connect", "Database connection failed") from e

    raise StoreError("connect", f"Unsupported database scheme: {parsed.scheme!r}")
