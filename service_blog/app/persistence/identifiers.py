"""
Identifier allow-listing for table and column names.

Identifiers cannot be bound as parameters, so they are reduced to a
fixed character class instead. Disallowed characters are stripped, not
rejected: callers always get an identifier back.
"""

import re

_TABLE_DISALLOWED = re.compile(r"[^A-Za-z0-9_]")
_COLUMN_DISALLOWED = re.compile(r"[^A-Za-z0-9_.]")


def sanitize_table_name(table: str) -> str:
    """Keep only ``[A-Za-z0-9_]``."""
    return _TABLE_DISALLOWED.sub("", str(table))


def sanitize_column_name(column: str) -> str:
    """Keep only ``[A-Za-z0-9_.]``; the dot allows ``table.column``."""
    return _COLUMN_DISALLOWED.sub("", str(column))
