"""Mapping plan data classes.

Frozen dataclasses representing compiled, validated mapping plans.
Derived subsets (identity, constructor, property mappings) and the value
source of every field are computed once in ``__post_init__`` and never
change afterwards.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from row_graph.core.enums import FieldFlag, ValueSource


def prepend_prefix(column: str | None, prefix: str | None) -> str | None:
    """Qualify a column with a prefix; empty prefixes leave it unchanged."""
    if not column or not prefix:
        return column
    return prefix + column


@dataclass(frozen=True, eq=False)
class FieldMapping:
    """How one property or constructor argument is populated from a row.

    ``column`` may hold several comma-separated columns when the mapping
    correlates rows across result sets. ``composites`` carries the
    (property, column) parts of a composite nested-query key.
    """

    property: str | None
    column: str | None = None
    value_type: Any = None
    converter: Callable[[Any], Any] | None = None
    nested_plan_id: str | None = None
    nested_query_id: str | None = None
    composites: tuple[FieldMapping, ...] = ()
    flags: frozenset[FieldFlag] = frozenset()
    not_null_columns: frozenset[str] = frozenset()
    column_prefix: str | None = None
    result_set: str | None = None
    foreign_column: str | None = None
    lazy: bool = False
    source: ValueSource = field(init=False)

    def __post_init__(self) -> None:
        if self.nested_query_id is not None:
            source = ValueSource.NESTED_QUERY
        elif self.result_set is not None:
            source = ValueSource.RESULT_SET
        elif self.nested_plan_id is not None:
            source = ValueSource.NESTED_PLAN
        elif self.composites:
            source = ValueSource.COMPOSITE
        else:
            source = ValueSource.COLUMN
        object.__setattr__(self, "source", source)

    @property
    def is_identity(self) -> bool:
        return FieldFlag.IDENTITY in self.flags

    @property
    def is_constructor_arg(self) -> bool:
        return FieldFlag.CONSTRUCTOR in self.flags

    @property
    def is_composite(self) -> bool:
        return bool(self.composites)

    @property
    def is_joined_nested(self) -> bool:
        """A nested plan filled from the same rows (not from a later result set)."""
        return self.source is ValueSource.NESTED_PLAN

    def __repr__(self) -> str:
        return (
            f"FieldMapping(property={self.property!r}, column={self.column!r}, "
            f"source={self.source.value})"
        )


@dataclass(frozen=True)
class Discriminator:
    """Selects a more specific plan from the value of a tag column."""

    column: str
    cases: Mapping[str, str]
    value_type: Any = None
    converter: Callable[[Any], Any] | None = None

    def plan_id_for(self, value: str) -> str | None:
        return self.cases.get(value)


@dataclass(frozen=True)
class MappingPlan:
    """Compiled plan for materializing one target type."""

    plan_id: str
    target_type: Any
    mappings: tuple[FieldMapping, ...] = ()
    discriminator: Discriminator | None = None
    auto_mapping: bool | None = None

    identity_mappings: tuple[FieldMapping, ...] = field(init=False)
    constructor_mappings: tuple[FieldMapping, ...] = field(init=False)
    property_mappings: tuple[FieldMapping, ...] = field(init=False)
    mapped_columns: frozenset[str] = field(init=False)  # upper-cased
    mapped_properties: frozenset[str] = field(init=False)
    has_nested_plans: bool = field(init=False)
    has_nested_queries: bool = field(init=False)

    def __post_init__(self) -> None:
        mapped_columns: set[str] = set()
        mapped_properties: set[str] = set()
        for mapping in self.mappings:
            if mapping.column is not None:
                mapped_columns.add(mapping.column.upper())
            for composite in mapping.composites:
                if composite.column is not None:
                    mapped_columns.add(composite.column.upper())
            if mapping.property is not None:
                mapped_properties.add(mapping.property)

        values = {
            "identity_mappings": tuple(m for m in self.mappings if m.is_identity),
            "constructor_mappings": tuple(m for m in self.mappings if m.is_constructor_arg),
            "property_mappings": tuple(m for m in self.mappings if not m.is_constructor_arg),
            "mapped_columns": frozenset(mapped_columns),
            "mapped_properties": frozenset(mapped_properties),
            "has_nested_plans": any(m.is_joined_nested for m in self.mappings),
            "has_nested_queries": any(m.source is ValueSource.NESTED_QUERY for m in self.mappings),
        }
        for name, value in values.items():
            object.__setattr__(self, name, value)


@dataclass(frozen=True)
class StatementMapping:
    """The plans a statement's result sets map to.

    ``plan_ids`` map positionally onto the leading result sets. Any further
    result sets are named by ``result_sets`` (aligned with the result set
    index) and feed field mappings that declare ``result_set``.
    """

    statement_id: str
    plan_ids: tuple[str, ...]
    result_sets: tuple[str, ...] | None = None
    result_ordered: bool = False


@dataclass(frozen=True)
class RowWindow:
    """Offset/limit applied to the rows of a result set."""

    offset: int = 0
    limit: int | None = None

    @property
    def is_bounded(self) -> bool:
        return self.offset > 0 or self.limit is not None


UNBOUNDED = RowWindow()
