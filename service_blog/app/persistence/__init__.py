"""
Persistence package.

Everything that talks to the relational store lives here:
- connection: DB-API adapter (sqlite3/psycopg2) with explicit transactions.
- identifiers: allow-list sanitization for table and column names.
- query_builder: parameterized select/insert/update/delete plus transactions.
- repositories: typed access to the users, posts and search_logs tables.
- schema: table creation.
"""

from .connection import StoreConnection, connect
from .query_builder import QueryBuilder, QuerySpec, compile_select
from .identifiers import sanitize_table_name, sanitize_column_name

__all__ = [
    "StoreConnection",
    "connect",
    "QueryBuilder",
    "QuerySpec",
    "compile_select",
    "sanitize_table_name",
    "sanitize_column_name",
]
