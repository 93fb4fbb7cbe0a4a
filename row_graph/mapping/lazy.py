"""Deferred value cells.

A DeferredValue wraps a nested query and its parameters and runs it on
first read, exactly once, on whichever thread reads it first. Cells are
installed directly as property values; ``LazyLoadable`` targets resolve
them transparently on attribute access.

Eager mappings whose query result is already cached (or still running)
also get a cell. Those cells are handed to the executor, which resolves
them when its outermost query completes.
"""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Callable, Iterator
from typing import Any

from row_graph.adapters.protocol import NestedQueryExecutor
from row_graph.core.exceptions import ConfigurationError, NestedQueryError, RowGraphError
from row_graph.core.objects import get_value, property_type, set_value
from row_graph.mapping.plan import FieldMapping, prepend_prefix
from row_graph.mapping.result_set import ResultSetWrapper

logger = logging.getLogger(__name__)

_UNSET = object()

# Property value placeholder: the value is installed later (deferred cell or
# a later result set), but the property counts as found.
DEFERRED = object()


class DeferredValue:
    """A value computed on first access."""

    __slots__ = ("query_id", "params", "_loader", "_value", "_lock")

    def __init__(self, query_id: str, params: Any, loader: Callable[[], Any]) -> None:
        self.query_id = query_id
        self.params = params
        self._loader = loader
        self._value: Any = _UNSET
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._value is not _UNSET

    def get(self) -> Any:
        """Resolve on first access; later calls return the same value."""
        if self._value is _UNSET:
            with self._lock:
                if self._value is _UNSET:
                    logger.debug("Loading deferred '%s' with %r", self.query_id, self.params)
                    try:
                        self._value = self._loader()
                    except RowGraphError:
                        raise
                    except Exception as e:
                        raise NestedQueryError(self.query_id, str(e)) from e
        return self._value

    def __repr__(self) -> str:
        state = "loaded" if self.loaded else "pending"
        return f"<DeferredValue {self.query_id} {state}>"


class LazyLoaderMap:
    """Deferred cells installed on one object while it is being built."""

    def __init__(self) -> None:
        self._cells: dict[str, DeferredValue] = {}

    def add(self, target: Any, property_name: str, cell: DeferredValue) -> None:
        self._cells[property_name] = cell
        set_value(target, property_name, cell)

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self) -> Iterator[str]:
        return iter(self._cells)


def resolve_deferred(target: Any, property_name: str | None = None) -> Any:
    """Replace deferred cells on ``target`` with their values.

    Resolves one property when ``property_name`` is given (and returns its
    value), otherwise every deferred property (and returns ``target``).
    """
    if property_name is not None:
        value = get_value(target, property_name)
        if isinstance(value, DeferredValue):
            value = value.get()
            set_value(target, property_name, value)
        return value
    names = target.keys() if isinstance(target, dict) else list(vars(target))
    for name in list(names):
        if isinstance(get_value(target, name), DeferredValue):
            resolve_deferred(target, name)
    return target


class LazyLoadable:
    """Mixin that resolves deferred cells on first attribute read."""

    def __getattribute__(self, name: str) -> Any:
        value = object.__getattribute__(self, name)
        if isinstance(value, DeferredValue):
            value = value.get()
            object.__setattr__(self, name, value)
        return value


class NestedQueryResolver:
    """Runs the nested queries referenced by field mappings."""

    def __init__(self, executor: NestedQueryExecutor | None) -> None:
        self._executor = executor

    @property
    def executor(self) -> NestedQueryExecutor:
        if self._executor is None:
            raise ConfigurationError("Nested query mappings require a nested query executor")
        return self._executor

    def prepare_parameter(
        self,
        rsw: ResultSetWrapper,
        mapping: FieldMapping,
        prefix: str | None,
        plan_id: str,
    ) -> Any:
        """Read the nested query parameter from the current row.

        Composite mappings produce a dict keyed by parameter name. Returns
        None when the parameter (or any composite part) is null.
        """
        if mapping.is_composite:
            params: dict[str, Any] = {}
            for part in mapping.composites:
                column = prepend_prefix(part.column, prefix)
                value = (
                    rsw.read(
                        column,
                        part.value_type,
                        part.converter,
                        plan_id=plan_id,
                        property_name=part.property,
                    )
                    if column is not None
                    else None
                )
                if value is None:
                    return None
                params[str(part.property)] = value
            return params
        column = prepend_prefix(mapping.column, prefix)
        if column is None:
            return None
        return rsw.read(column, plan_id=plan_id, property_name=mapping.property)

    def run(self, query_id: str, params: Any, target_type: Any = None) -> Any:
        try:
            return self.executor.run(query_id, params, target_type)
        except RowGraphError:
            raise
        except Exception as e:
            raise NestedQueryError(query_id, str(e)) from e

    def constructor_value(
        self,
        rsw: ResultSetWrapper,
        mapping: FieldMapping,
        prefix: str | None,
        plan_id: str,
    ) -> Any:
        """Eagerly run a nested query feeding a constructor argument."""
        params = self.prepare_parameter(rsw, mapping, prefix, plan_id)
        if params is None:
            return None
        return self.run(str(mapping.nested_query_id), params, mapping.value_type)

    def property_value(
        self,
        rsw: ResultSetWrapper,
        target: Any,
        mapping: FieldMapping,
        lazy_loader: LazyLoaderMap,
        prefix: str | None,
        plan_id: str,
    ) -> Any:
        """Value of a nested query property, or DEFERRED once a cell is installed."""
        params = self.prepare_parameter(rsw, mapping, prefix, plan_id)
        if params is None:
            return None
        query_id = str(mapping.nested_query_id)
        target_type = mapping.value_type or property_type(target, mapping.property)
        loader = functools.partial(self.run, query_id, params, target_type)
        if self.executor.is_cached(query_id, params):
            cell = DeferredValue(query_id, params, loader)
            set_value(target, str(mapping.property), cell)
            if not mapping.lazy:
                self.executor.defer_load(target, str(mapping.property), cell)
            return DEFERRED
        if mapping.lazy:
            lazy_loader.add(target, str(mapping.property), DeferredValue(query_id, params, loader))
            return DEFERRED
        return loader()
