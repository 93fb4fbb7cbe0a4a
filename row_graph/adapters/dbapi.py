"""DB-API 2.0 (PEP 249) cursor adapter.

Wraps a driver cursor that has already executed a statement, e.g. a
``sqlite3.Cursor``. Handles both tuple-like rows and dict-like rows
from different drivers.
"""

from __future__ import annotations

from typing import Any


class DBAPICursor:
    """Row cursor over an executed DB-API cursor."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor
        description = cursor.description or ()
        self._columns = [desc[0] for desc in description]
        self._column_types: dict[str, str] = {}
        for desc in description:
            type_code = desc[1] if len(desc) > 1 else None
            if isinstance(type_code, str):
                self._column_types[desc[0].upper()] = type_code
        self._closed = False

    @property
    def columns(self) -> list[str]:
        return self._columns

    def column_type(self, column: str) -> str | None:
        return self._column_types.get(column.upper())

    def next_row(self) -> dict[str, Any] | None:
        row = self._cursor.fetchone()
        if row is None:
            return None

        # Check if row is already dict-like (e.g., psycopg dict_row)
        if isinstance(row, dict):
            return dict(row)

        # Tuple-like row (sqlite3.Row included), zip with columns
        return dict(zip(self._columns, tuple(row), strict=True))

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True
        self._cursor.close()
