"""Materializer - bulk, single-object, streaming and cursor contracts.

Each call builds a fresh ResultSetHandler, so concurrent calls share only
the immutable Configuration.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import Any

from row_graph.adapters.protocol import NestedQueryExecutor, RowCursor
from row_graph.core.config import Configuration
from row_graph.core.exceptions import MultipleRowsError
from row_graph.mapping.handler import Consumer, ResultSetHandler
from row_graph.mapping.plan import UNBOUNDED, RowWindow, StatementMapping


def collapse_single_result_list(results: list[list[Any]]) -> list[Any]:
    """One result set yields its list; several yield a list of lists."""
    if len(results) == 1:
        return results[0]
    return list(results)


class Materializer:
    """Turns executed statement cursors into object graphs.

    Args:
        configuration: Plans, settings, converters and object factory.
        query_executor: Runs nested queries referenced by plans.

    Example:
        >>> materializer = Materializer(configuration)
        >>> blogs = materializer.fetch_all(statement, [cursor])
    """

    def __init__(
        self,
        configuration: Configuration,
        query_executor: NestedQueryExecutor | None = None,
    ) -> None:
        self._configuration = configuration
        self._query_executor = query_executor

    @property
    def configuration(self) -> Configuration:
        return self._configuration

    def _handler(self, statement: StatementMapping, window: RowWindow) -> ResultSetHandler:
        return ResultSetHandler(self._configuration, statement, window, self._query_executor)

    def fetch_all(
        self,
        statement: StatementMapping,
        cursors: Sequence[RowCursor],
        window: RowWindow = UNBOUNDED,
    ) -> list[Any]:
        """Materialize every result set.

        Returns:
            The top-level objects of the single mapped result set, or one
            list per result set when the statement maps several.
        """
        results = self._handler(statement, window).handle_result_sets(cursors)
        return collapse_single_result_list(results)

    def fetch_one(
        self,
        statement: StatementMapping,
        cursors: Sequence[RowCursor],
    ) -> Any | None:
        """Materialize at most one top-level object.

        Raises:
            MultipleRowsError: If more than one object results.
        """
        results = self.fetch_all(statement, cursors)
        if len(results) == 1:
            return results[0]
        if len(results) > 1:
            raise MultipleRowsError(statement.statement_id, len(results))
        return None

    def stream(
        self,
        statement: StatementMapping,
        cursors: Sequence[RowCursor],
        consumer: Consumer,
        window: RowWindow = UNBOUNDED,
    ) -> None:
        """Hand each top-level object to ``consumer`` in output order.

        Raises:
            UnsafeResultHandlerError: If a plan maps nested results and the
                statement is not result_ordered (unless the safety check is
                disabled).
        """
        self._handler(statement, window).handle_result_sets(cursors, consumer)

    def iterate(
        self,
        statement: StatementMapping,
        cursor: RowCursor,
        window: RowWindow = UNBOUNDED,
    ) -> Iterator[Any]:
        """Lazily yield the top-level objects of a single-plan statement."""
        return self._handler(statement, window).iterate(cursor)
