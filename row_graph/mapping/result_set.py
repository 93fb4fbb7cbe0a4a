"""Result set wrapper.

Adds case-insensitive column lookup, row position tracking and cached
mapped/unmapped column splits on top of a RowCursor.
"""

from __future__ import annotations

from typing import Any

from row_graph.adapters.protocol import RowCursor
from row_graph.core.converters import Converter, ConverterRegistry
from row_graph.core.exceptions import ResultMapError
from row_graph.mapping.plan import MappingPlan


class ResultSetWrapper:
    """The current row of one cursor plus per-plan column bookkeeping."""

    def __init__(self, cursor: RowCursor, converters: ConverterRegistry) -> None:
        self.cursor = cursor
        self.converters = converters
        self.columns: list[str] = list(cursor.columns)
        self._by_upper = {column.upper(): column for column in self.columns}
        self._unmapped: dict[str, list[str]] = {}
        self._mapped_upper: dict[str, frozenset[str]] = {}
        self.row: dict[str, Any] = {}
        self.row_number = 0

    def next(self) -> bool:
        """Advance to the next row; False when the cursor is exhausted."""
        if self.cursor.closed:
            return False
        row = self.cursor.next_row()
        if row is None:
            return False
        self.row = dict(row)
        self.row_number += 1
        return True

    def skip(self, count: int) -> None:
        for _ in range(count):
            if not self.next():
                break

    def has_column(self, column: str) -> bool:
        return column.upper() in self._by_upper

    def raw(self, column: str) -> Any:
        """Raw value of a column in the current row.

        Raises:
            KeyError: If the result set has no such column.
        """
        actual = self._by_upper.get(column.upper())
        if actual is None:
            raise KeyError(f"Column '{column}' not found in result set {self.columns}")
        return self.row.get(actual)

    def read(
        self,
        column: str,
        value_type: Any = None,
        converter: Converter | None = None,
        *,
        plan_id: str = "",
        property_name: str | None = None,
    ) -> Any:
        """Read and convert a column of the current row.

        Null values are returned as None without conversion. Failures are
        wrapped in ResultMapError with the plan, property and row position.
        """
        try:
            value = self.raw(column)
            if value is None:
                return None
            if converter is None:
                converter = self.converters.converter(value_type, self.column_type(column))
            return converter(value) if converter is not None else value
        except Exception as e:
            raise ResultMapError(plan_id, property_name, column, self.row_number, str(e)) from e

    def column_type(self, column: str) -> str | None:
        actual = self._by_upper.get(column.upper(), column)
        return self.cursor.column_type(actual)

    def _split(self, plan: MappingPlan, prefix: str | None) -> None:
        key = f"{plan.plan_id}:{prefix}"
        upper_prefix = (prefix or "").upper()
        mapped_upper = {upper_prefix + column for column in plan.mapped_columns}
        mapped: list[str] = []
        unmapped: list[str] = []
        for column in self.columns:
            if column.upper() in mapped_upper:
                mapped.append(column)
            else:
                unmapped.append(column)
        self._unmapped[key] = unmapped
        self._mapped_upper[key] = frozenset(column.upper() for column in mapped)

    def is_mapped(self, plan: MappingPlan, prefix: str | None, column: str) -> bool:
        key = f"{plan.plan_id}:{prefix}"
        if key not in self._mapped_upper:
            self._split(plan, prefix)
        return column.upper() in self._mapped_upper[key]

    def unmapped_column_names(self, plan: MappingPlan, prefix: str | None) -> list[str]:
        """Columns of this result set no explicit mapping of the plan covers."""
        key = f"{plan.plan_id}:{prefix}"
        if key not in self._unmapped:
            self._split(plan, prefix)
        return self._unmapped[key]

    @property
    def closed(self) -> bool:
        return self.cursor.closed

    def close(self) -> None:
        """Close the cursor unless it is already closed."""
        if not self.cursor.closed:
            self.cursor.close()
