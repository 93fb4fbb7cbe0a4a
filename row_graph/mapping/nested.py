"""Nested result helpers: ancestor frame, collection linking, not-null guards."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from row_graph.core.exceptions import ConfigurationError, ObjectCreationError
from row_graph.core.objects import (
    ObjectFactory,
    add_to_collection,
    get_value,
    metadata_for,
    set_value,
)
from row_graph.mapping.plan import FieldMapping, prepend_prefix
from row_graph.mapping.result_set import ResultSetWrapper

_MISSING = object()


class AncestorFrame:
    """Objects under construction on the current recursion path, by plan id.

    A nested mapping that points back at a plan already on the path links
    the in-progress instance instead of recursing, which closes cycles.
    """

    def __init__(self) -> None:
        self._objects: dict[str, Any] = {}

    def get(self, plan_id: str) -> Any:
        return self._objects.get(plan_id)

    @contextmanager
    def entered(self, plan_id: str, instance: Any) -> Iterator[None]:
        """Register ``instance`` for the duration of the block, on every exit path."""
        previous = self._objects.get(plan_id, _MISSING)
        self._objects[plan_id] = instance
        try:
            yield
        finally:
            if previous is _MISSING:
                del self._objects[plan_id]
            else:
                self._objects[plan_id] = previous

    def __contains__(self, plan_id: object) -> bool:
        return plan_id in self._objects

    def __len__(self) -> int:
        return len(self._objects)


def nested_column_prefix(parent_prefix: str | None, mapping: FieldMapping) -> str | None:
    prefix = (parent_prefix or "") + (mapping.column_prefix or "")
    return prefix or None


def any_not_null_column_has_value(
    rsw: ResultSetWrapper,
    mapping: FieldMapping,
    prefix: str | None,
    plan_id: str,
) -> bool:
    """Whether the current row carries data for a nested mapping.

    With not-null guard columns, at least one must be non-null. Without
    them but with a prefix, at least one column must carry the prefix.
    """
    if mapping.not_null_columns:
        for column in mapping.not_null_columns:
            qualified = prepend_prefix(column, prefix) or column
            if not rsw.has_column(qualified):
                continue
            if rsw.read(qualified, plan_id=plan_id, property_name=mapping.property) is not None:
                return True
        return False
    if prefix:
        upper = prefix.upper()
        return any(column.upper().startswith(upper) for column in rsw.columns)
    return True


def instantiate_collection_if_appropriate(
    objects: ObjectFactory,
    holder: Any,
    mapping: FieldMapping,
) -> Any:
    """Return the collection behind a mapping's property, creating it if unset.

    Returns None when the property is not collection-valued.
    """
    name = mapping.property
    if name is None:
        return None
    value = get_value(holder, name)
    if value is None:
        value_type = mapping.value_type
        if value_type is None:
            if isinstance(holder, Mapping):
                return None
            metadata = metadata_for(type(holder))
            if not metadata.has_setter(name) and not hasattr(holder, name):
                raise ConfigurationError(
                    f"Cannot link nested result into '{name}': {type(holder).__name__} "
                    "has no such property and the mapping declares no type"
                )
            value_type = metadata.setter_type(name)
        if objects.is_collection(value_type):
            try:
                collection = objects.new_instance(value_type)
            except ObjectCreationError as e:
                raise ConfigurationError(
                    f"Error instantiating collection property '{name}': {e}"
                ) from e
            set_value(holder, name, collection)
            return collection
    elif objects.is_collection(type(value)):
        return value
    return None


def link_objects(objects: ObjectFactory, holder: Any, mapping: FieldMapping, value: Any) -> None:
    """Append ``value`` to a collection property, or assign a single-valued one."""
    collection = instantiate_collection_if_appropriate(objects, holder, mapping)
    if collection is not None:
        add_to_collection(collection, value)
    elif mapping.property is not None:
        set_value(holder, mapping.property, value)
