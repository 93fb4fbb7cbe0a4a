"""Statement engine.

The Engine resolves statements from the PlanRegistry, asks the caller's
StatementRunner for their cursors, and materializes the rows. It is also
the nested-query executor: nested queries are ordinary statements whose
results are cached by (statement id, parameters) for the duration of the
outermost call. Deferred loads registered while that call runs are
resolved before it returns, and the cache is cleared afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from row_graph.adapters.protocol import RowCursor, StatementRunner
from row_graph.core.config import Configuration, MappingSettings
from row_graph.core.converters import ConverterRegistry
from row_graph.core.exceptions import (
    ExecutionError,
    MultipleRowsError,
    NestedQueryError,
    RowGraphError,
)
from row_graph.core.objects import ObjectFactory, add_to_collection, get_value
from row_graph.mapping.handler import Consumer
from row_graph.mapping.lazy import DeferredValue, resolve_deferred
from row_graph.mapping.materializer import Materializer
from row_graph.mapping.plan import UNBOUNDED, MappingPlan, RowWindow, StatementMapping
from row_graph.mapping.registry import PlanRegistry

logger = logging.getLogger(__name__)

# Cache entry of a nested query that is still running
_EXECUTING = object()


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return tuple(sorted((str(k), _freeze(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(_freeze(v) for v in value)
    try:
        hash(value)
    except TypeError:
        return repr(value)
    return value


def extract_object_from_list(
    results: list[Any],
    target_type: Any,
    objects: ObjectFactory | None = None,
    query_id: str = "",
) -> Any:
    """Shape a query's result list for the property that receives it.

    List-compatible targets receive the list, other collections a copy of
    that type, and anything else the single element (None when empty).

    Raises:
        MultipleRowsError: If a single-valued target receives several rows.
    """
    objects = objects or ObjectFactory()
    if target_type is not None:
        concrete = objects.resolve_type(target_type)
        if concrete is object or (isinstance(concrete, type) and isinstance(results, concrete)):
            return results
        if concrete is tuple:
            return tuple(results)
        if objects.is_collection(concrete):
            collection = objects.new_instance(concrete)
            for item in results:
                add_to_collection(collection, item)
            return collection
    if len(results) > 1:
        raise MultipleRowsError(query_id, len(results))
    return results[0] if results else None


class Engine:
    """Synchronous statement engine with a per-call nested-query cache.

    An Engine is not thread-safe: use one per thread, sharing the
    Configuration.
    """

    def __init__(self, configuration: Configuration, runner: StatementRunner) -> None:
        self._configuration = configuration
        self._runner = runner
        self._materializer = Materializer(configuration, query_executor=self)
        self._local_cache: dict[tuple[str, Any], Any] = {}
        self._deferred_loads: list[tuple[Any, str, DeferredValue]] = []
        self._query_depth = 0

    @classmethod
    def from_plans(
        cls,
        runner: StatementRunner,
        plans: Iterable[MappingPlan],
        statements: Iterable[StatementMapping] = (),
        *,
        settings: MappingSettings | None = None,
        converters: ConverterRegistry | None = None,
    ) -> Engine:
        """Create an Engine from plans and statements.

        Args:
            runner: Executes a statement id and returns its cursors
            plans: Mapping plans
            statements: Statement mappings
            settings: Materialization settings (defaults when omitted)
            converters: Converter registry (defaults when omitted)

        Returns:
            Engine instance
        """
        configuration = Configuration(
            plans=PlanRegistry(plans, statements),
            settings=settings or MappingSettings(),
            converters=converters or ConverterRegistry(),
        )
        return cls(configuration, runner)

    @property
    def configuration(self) -> Configuration:
        return self._configuration

    def _execute(self, statement_id: str, params: Any) -> tuple[StatementMapping, list[RowCursor]]:
        statement = self._configuration.plans.statement(statement_id)
        try:
            cursors = list(self._runner(statement_id, params))
        except RowGraphError:
            raise
        except Exception as e:
            raise ExecutionError(f"Statement '{statement_id}' failed: {e}") from e
        return statement, cursors

    @contextmanager
    def _query_scope(self) -> Iterator[None]:
        """Track query nesting; the outermost scope owns cache and deferred loads."""
        self._query_depth += 1
        try:
            yield
            if self._query_depth == 1:
                self._resolve_deferred_loads()
        finally:
            self._query_depth -= 1
            if self._query_depth == 0:
                self._deferred_loads.clear()
                self._local_cache.clear()

    def _resolve_deferred_loads(self) -> None:
        while self._deferred_loads:
            target, property_name, cell = self._deferred_loads.pop(0)
            # Skip properties overwritten since the cell was installed
            if get_value(target, property_name) is cell:
                resolve_deferred(target, property_name)

    def fetch_all(
        self,
        statement_id: str,
        params: Any = None,
        *,
        window: RowWindow = UNBOUNDED,
    ) -> list[Any]:
        """Fetch every top-level object of a statement."""
        with self._query_scope():
            statement, cursors = self._execute(statement_id, params)
            return self._materializer.fetch_all(statement, cursors, window)

    def fetch_one(self, statement_id: str, params: Any = None) -> Any:
        """Fetch a single object.

        Returns None if nothing matches.
        Raises MultipleRowsError if more than one object results.
        """
        with self._query_scope():
            statement, cursors = self._execute(statement_id, params)
            return self._materializer.fetch_one(statement, cursors)

    def stream(
        self,
        statement_id: str,
        params: Any,
        consumer: Consumer,
        *,
        window: RowWindow = UNBOUNDED,
    ) -> None:
        """Hand each top-level object to ``consumer`` as it is completed."""

        def handle(value: Any) -> None:
            if self._query_depth == 1:
                self._resolve_deferred_loads()
            consumer(value)

        with self._query_scope():
            statement, cursors = self._execute(statement_id, params)
            self._materializer.stream(statement, cursors, handle, window)

    def iterate(
        self,
        statement_id: str,
        params: Any = None,
        *,
        window: RowWindow = UNBOUNDED,
    ) -> Iterator[Any]:
        """Yield the top-level objects of a single-result-set statement."""
        statement, cursors = self._execute(statement_id, params)
        if len(cursors) != 1:
            for cursor in cursors:
                cursor.close()
            raise ExecutionError(
                f"Statement '{statement_id}' returned {len(cursors)} result sets; "
                "iterate() reads exactly one"
            )
        return self._scoped(self._materializer.iterate(statement, cursors[0], window))

    def _scoped(self, values: Iterator[Any]) -> Iterator[Any]:
        with self._query_scope():
            for value in values:
                if self._query_depth == 1:
                    self._resolve_deferred_loads()
                yield value

    # -- Nested query executor ----------------------------------------------

    def run(self, query_id: str, params: Any, target_type: Any = None) -> Any:
        """Run a nested query, reusing a cached result for the same parameters.

        Raises:
            NestedQueryError: If the query is re-entered while still running.
        """
        with self._query_scope():
            key = (query_id, _freeze(params))
            cached = self._local_cache.get(key)
            if cached is _EXECUTING:
                raise NestedQueryError(query_id, "query re-entered while still executing")
            if cached is None:
                logger.debug("Running nested query '%s' with %r", query_id, params)
                self._local_cache[key] = _EXECUTING
                try:
                    cached = self.fetch_all(query_id, params)
                except Exception:
                    del self._local_cache[key]
                    raise
                self._local_cache[key] = cached
            return extract_object_from_list(
                cached, target_type, self._configuration.objects, query_id
            )

    def is_cached(self, query_id: str, params: Any) -> bool:
        """Whether (query_id, params) has a result or is currently running."""
        return (query_id, _freeze(params)) in self._local_cache

    def defer_load(self, target: Any, property_name: str, cell: DeferredValue) -> None:
        """Resolve ``cell`` into ``target`` once the outermost call completes."""
        self._deferred_loads.append((target, property_name, cell))

    def clear_cache(self) -> None:
        self._local_cache.clear()

    def __repr__(self) -> str:
        return f"<Engine plans={len(self._configuration.plans)} cached={len(self._local_cache)}>"

