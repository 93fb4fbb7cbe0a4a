"""Collaborator protocols.

Row cursors feed rows into the materializer; the nested-query executor
runs the queries nested mappings point at. Every cursor adapter MUST
implement RowCursor.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class RowCursor(Protocol):
    """Sequential access to the rows of one result set."""

    @property
    def columns(self) -> Sequence[str]:
        """Column names in result order."""
        ...

    def column_type(self, column: str) -> str | None:
        """Declared type of a column, if the source reports one."""
        ...

    def next_row(self) -> Mapping[str, Any] | None:
        """Advance and return the next row keyed by column name, or None when exhausted."""
        ...

    @property
    def closed(self) -> bool:
        """Whether close() has been called."""
        ...

    def close(self) -> None:
        """Release the underlying resource."""
        ...


@runtime_checkable
class NestedQueryExecutor(Protocol):
    """Runs nested queries and reports which results it already holds."""

    def run(self, query_id: str, params: Any, target_type: Any = None) -> Any:
        """Execute a query and shape its result for the target type."""
        ...

    def is_cached(self, query_id: str, params: Any) -> bool:
        """Whether a result for (query_id, params) is already available."""
        ...

    def defer_load(self, target: Any, property_name: str, cell: Any) -> None:
        """Register a cell to resolve once the outermost query completes."""
        ...


@runtime_checkable
class StatementRunner(Protocol):
    """Executes a statement and returns its result sets as cursors."""

    def __call__(self, statement_id: str, params: Any) -> Sequence[RowCursor]:
        ...
