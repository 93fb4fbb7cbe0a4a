"""In-memory row cursor."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any


class MemoryCursor:
    """Row cursor over rows held in memory.

    Rows may be mappings or sequences; sequences are zipped with
    ``columns``. When ``columns`` is omitted the keys of the first
    mapping row are used.

    Args:
        rows: Row data.
        columns: Column names in result order.
        column_types: Optional declared type per column.
    """

    def __init__(
        self,
        rows: Iterable[Mapping[str, Any] | Sequence[Any]],
        columns: Sequence[str] | None = None,
        column_types: Mapping[str, str] | None = None,
    ) -> None:
        self._rows = list(rows)
        if columns is None:
            first = self._rows[0] if self._rows else {}
            if not isinstance(first, Mapping):
                raise ValueError("columns are required for sequence rows")
            columns = list(first.keys())
        self._columns = list(columns)
        self._column_types = {k.upper(): v for k, v in (column_types or {}).items()}
        self._position = 0
        self._closed = False
        self.close_count = 0

    @property
    def columns(self) -> list[str]:
        return self._columns

    def column_type(self, column: str) -> str | None:
        return self._column_types.get(column.upper())

    def next_row(self) -> dict[str, Any] | None:
        if self._closed:
            raise RuntimeError("Cursor is closed")
        if self._position >= len(self._rows):
            return None
        row = self._rows[self._position]
        self._position += 1
        if isinstance(row, Mapping):
            return {column: row.get(column) for column in self._columns}
        return dict(zip(self._columns, row, strict=True))

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True
        self.close_count += 1
