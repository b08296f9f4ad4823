"""
Parameterized query construction over a StoreConnection.

Every value reaches the store as a bound parameter. Identifiers (tables,
columns, ORDER BY targets) are allow-list sanitized because they cannot
be bound; LIMIT and OFFSET are the only literals placed in statement
text, and only after integer coercion.
"""

import math
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from shared.logging import get_logger
from shared.errors import InvalidIdentifier, StoreError, UnsafeOperationError
from shared.metrics import MetricsCollector
from .connection import StoreConnection
from .identifiers import sanitize_table_name, sanitize_column_name

_LEADING_INT = re.compile(r"^\s*[+-]?\d+")

Columns = Union[str, Sequence[str]]


def coerce_int(value: Any) -> int:
    """Integer coercion that never raises: ``"10abc" -> 10``, ``"abc" -> 0``."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    match = _LEADING_INT.match(str(value)) if value is not None else None
    return int(match.group(0)) if match else 0


def normalize_direction(direction: Any) -> str:
    """Only ``DESC`` (any case) survives; everything else is ``ASC``."""
    if isinstance(direction, str) and direction.strip().upper() == "DESC":
        return "DESC"
    return "ASC"


@dataclass
class QuerySpec:
    """A select over one table."""
    table: str
    columns: Columns = "*"
    conditions: Dict[str, Any] = field(default_factory=dict)
    order_by: Optional[str] = None
    order_direction: str = "ASC"
    limit: Optional[Any] = None
    offset: Optional[Any] = None

    @classmethod
    def from_options(cls, table: str, conditions: Optional[Mapping[str, Any]] = None,
                     columns: Columns = "*", options: Optional[Mapping[str, Any]] = None) -> "QuerySpec":
        options = options or {}
        return cls(
            table=table,
            columns=columns,
            conditions=dict(conditions or {}),
            order_by=options.get("order_by"),
            order_direction=options.get("order_direction", "ASC"),
            limit=options.get("limit"),
            offset=options.get("offset"),
        )


def _table(table: str) -> str:
    clean = sanitize_table_name(table)
    if not clean:
        raise InvalidIdentifier(table, "table")
    return clean


def _column(column: str) -> str:
    clean = sanitize_column_name(column)
    if not clean:
        raise InvalidIdentifier(column, "column")
    return clean


def _projection(columns: Columns) -> str:
    if isinstance(columns, str):
        return "*" if columns == "*" else _column(columns)
    return ", ".join(_column(c) for c in columns)


def _where(conditions: Mapping[str, Any], placeholder: str) -> Tuple[str, List[Any]]:
    clauses = []
    params: List[Any] = []
    for column, value in conditions.items():
        clauses.append(f"{_column(column)} = {placeholder}")
        params.append(value)
    return " AND ".join(clauses), params


def compile_select(spec: QuerySpec, placeholder: str = "?") -> Tuple[str, List[Any]]:
    """Render a QuerySpec to statement text plus bound parameters."""
    sql = f"SELECT {_projection(spec.columns)} FROM {_table(spec.table)}"
    params: List[Any] = []

    if spec.conditions:
        where, params = _where(spec.conditions, placeholder)
        sql += f" WHERE {where}"

    if spec.order_by:
        sql += f" ORDER BY {_column(spec.order_by)} {normalize_direction(spec.order_direction)}"

    limit = coerce_int(spec.limit) if spec.limit else 0
    if limit > 0:
        sql += f" LIMIT {limit}"
        offset = coerce_int(spec.offset) if spec.offset else 0
        if offset > 0:
            sql += f" OFFSET {offset}"

    return sql, params


class QueryBuilder:
    """Select/insert/update/delete against one store connection."""

    def __init__(self, connection: StoreConnection, metrics: Optional[MetricsCollector] = None):
        self.connection = connection
        self.metrics = metrics
        self.logger = get_logger("blog.store.query_builder")

    @property
    def placeholder(self) -> str:
        return self.connection.dialect.placeholder

    def _run(self, operation: str, sql: str, params: Sequence[Any]):
        if self.metrics:
            with self.metrics.time_operation("store_query_duration_seconds", operation=operation):
                return self.connection.execute(sql, params)
        return self.connection.execute(sql, params)

    def select(self, table: str, conditions: Optional[Mapping[str, Any]] = None,
               columns: Columns = "*", options: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Fetch rows matching every equality condition."""
        spec = QuerySpec.from_options(table, conditions, columns, options)
        sql, params = compile_select(spec, self.placeholder)
        return self._run("select", sql, params).fetchall()

    def select_one(self, table: str, conditions: Mapping[str, Any],
                   columns: Columns = "*") -> Optional[Dict[str, Any]]:
        rows = self.select(table, conditions, columns, {"limit": 1})
        return rows[0] if rows else None

    def count(self, table: str, conditions: Optional[Mapping[str, Any]] = None) -> int:
        """Number of rows matching every equality condition."""
        sql = f"SELECT COUNT(*) FROM {_table(table)}"
        params: List[Any] = []
        if conditions:
            where, params = _where(conditions, self.placeholder)
            sql += f" WHERE {where}"
        return int(self._run("count", sql, params).scalar() or 0)

    def insert(self, table: str, data: Mapping[str, Any]) -> Any:
        """Insert one row; returns the new row id."""
        if not data:
            raise UnsafeOperationError("insert", sanitize_table_name(table))

        columns = ", ".join(_column(c) for c in data)
        placeholders = ", ".join([self.placeholder] * len(data))
        sql = f"INSERT INTO {_table(table)} ({columns}) VALUES ({placeholders})"

        if self.connection.dialect.insert_returning:
            sql += " RETURNING id"
            new_id = self._run("insert", sql, list(data.values())).scalar()
            self.connection.record_insert_id(new_id)
            return new_id

        self._run("insert", sql, list(data.values()))
        return self.connection.last_insert_id()

    def update(self, table: str, data: Mapping[str, Any], conditions: Mapping[str, Any],
               allow_all_rows: bool = False) -> int:
        """Update matching rows; returns the affected row count.

        An empty condition set would touch every row, so it is refused
        unless ``allow_all_rows`` is passed explicitly.
        """
        clean_table = _table(table)
        if not conditions and not allow_all_rows:
            self.logger.error("Unconditioned update refused", table=clean_table)
            raise UnsafeOperationError("update", clean_table)
        if not data:
            raise UnsafeOperationError("update", clean_table)

        set_clause = ", ".join(f"{_column(c)} = {self.placeholder}" for c in data)
        params = list(data.values())
        sql = f"UPDATE {clean_table} SET {set_clause}"

        if conditions:
            where, where_params = _where(conditions, self.placeholder)
            sql += f" WHERE {where}"
            params.extend(where_params)

        return self._run("update", sql, params).rowcount

    def delete(self, table: str, conditions: Mapping[str, Any], allow_all_rows: bool = False) -> int:
        """Delete matching rows; same condition requirement as update."""
        clean_table = _table(table)
        if not conditions and not allow_all_rows:
            self.logger.error("Unconditioned delete refused", table=clean_table)
            raise UnsafeOperationError("delete", clean_table)

        sql = f"DELETE FROM {clean_table}"
        params: List[Any] = []
        if conditions:
            where, params = _where(conditions, self.placeholder)
            sql += f" WHERE {where}"

        return self._run("delete", sql, params).rowcount

    @contextmanager
    def transaction_scope(self) -> Iterator["QueryBuilder"]:
        """Begin; commit on normal exit; roll back and re-raise on failure.

        A failing COMMIT is rolled back too.
        """
        self.connection.begin()
        try:
            yield self
            self.connection.commit()
        except BaseException:
            self.logger.warning("Rolling back transaction")
            try:
                self.connection.rollback()
            except StoreError as e:
                self.logger.error("Rollback failed", error=str(e))
            raise

    def transaction(self, work: Callable[["QueryBuilder"], Any]) -> Any:
        """Run ``work(builder)`` atomically; single attempt, no retry."""
        with self.transaction_scope() as builder:
            return work(builder)

    def health_check(self) -> bool:
        """Check store health."""
        try:
            self.connection.execute("SELECT 1")
            return True
        except Exception as e:
            self.logger.warning("Store health check failed", error=str(e))
            return False

    def get_stats(self, tables: Sequence[str]) -> Dict[str, Any]:
        """Row counts for the given tables."""
        try:
            return {
                "tables": [{"table_name": _table(t), "table_rows": self.count(t)} for t in tables],
                "dialect": self.connection.dialect.name,
            }
        except StoreError as e:
            self.logger.error("Error getting store stats", error=str(e))
            return {"error": "Unable to retrieve stats"}
