"""Row identity.

A RowIdentity accumulates (label, value) pairs that identify "the same
logical entity" across repeated join rows. Identities with fewer than two
entries are unstable and replaced by ``NULL_IDENTITY``: such rows are
never deduplicated.
"""

from __future__ import annotations

from typing import Any

from row_graph.core.enums import ValueSource
from row_graph.core.objects import ObjectFactory, metadata_for
from row_graph.mapping.plan import FieldMapping, MappingPlan, prepend_prefix
from row_graph.mapping.registry import PlanRegistry
from row_graph.mapping.result_set import ResultSetWrapper


def _hashable(value: Any) -> Any:
    try:
        hash(value)
    except TypeError:
        return repr(value)
    return value


class RowIdentity:
    """Ordered, hashable sequence of identity entries."""

    __slots__ = ("_entries",)

    def __init__(self, entries: tuple[Any, ...] = ()) -> None:
        self._entries = entries

    def update(self, value: Any) -> None:
        self._entries = (*self._entries, _hashable(value))

    @property
    def update_count(self) -> int:
        return len(self._entries)

    @property
    def is_stable(self) -> bool:
        return self.update_count >= 2

    def copy(self) -> RowIdentity:
        return RowIdentity(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RowIdentity):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self) -> int:
        return hash(self._entries)

    def __repr__(self) -> str:
        return f"RowIdentity{self._entries!r}"


class _NullIdentity(RowIdentity):
    """Identity shared by every row that has no stable identity."""

    def update(self, value: Any) -> None:
        raise TypeError("NULL_IDENTITY cannot be updated")

    def __eq__(self, other: object) -> bool:
        return self is other

    def __hash__(self) -> int:
        return id(self)

    def __repr__(self) -> str:
        return "NULL_IDENTITY"


NULL_IDENTITY: RowIdentity = _NullIdentity()


def combine_identities(row_identity: RowIdentity, parent_identity: RowIdentity) -> RowIdentity:
    """Scope a nested row identity to its enclosing row's identity."""
    if row_identity.is_stable and parent_identity.is_stable:
        combined = row_identity.copy()
        combined.update(parent_identity)
        return combined
    return NULL_IDENTITY


class RowIdentityBuilder:
    """Computes row identities for plans against the current row."""

    def __init__(
        self,
        plans: PlanRegistry,
        objects: ObjectFactory,
        camel_case: bool,
        keep_empty_values: bool,
    ) -> None:
        self._plans = plans
        self._objects = objects
        self._camel_case = camel_case
        self._keep_empty_values = keep_empty_values

    def build(
        self,
        plan: MappingPlan,
        rsw: ResultSetWrapper,
        prefix: str | None,
    ) -> RowIdentity:
        identity = RowIdentity()
        identity.update(plan.plan_id)
        mappings = plan.identity_mappings or plan.property_mappings or plan.constructor_mappings
        if mappings:
            self._mapped_properties(plan, rsw, identity, mappings, prefix)
        elif self._objects.is_keyed_container(plan.target_type):
            self._all_columns(rsw, identity)
        else:
            self._unmapped_properties(plan, rsw, identity, prefix)
        if not identity.is_stable:
            return NULL_IDENTITY
        return identity

    def _mapped_properties(
        self,
        plan: MappingPlan,
        rsw: ResultSetWrapper,
        identity: RowIdentity,
        mappings: tuple[FieldMapping, ...],
        prefix: str | None,
    ) -> None:
        for mapping in mappings:
            if mapping.is_joined_nested:
                nested = self._plans.get(mapping.nested_plan_id)
                self._mapped_properties(
                    nested,
                    rsw,
                    identity,
                    nested.constructor_mappings,
                    prepend_prefix(mapping.column_prefix, prefix),
                )
            elif mapping.source is not ValueSource.NESTED_QUERY:
                column = prepend_prefix(mapping.column, prefix)
                if column is not None and rsw.is_mapped(plan, prefix, column):
                    value = rsw.read(
                        column,
                        mapping.value_type,
                        mapping.converter,
                        plan_id=plan.plan_id,
                        property_name=mapping.property,
                    )
                    if value is not None or self._keep_empty_values:
                        identity.update(column.upper())
                        identity.update(value)

    def _unmapped_properties(
        self,
        plan: MappingPlan,
        rsw: ResultSetWrapper,
        identity: RowIdentity,
        prefix: str | None,
    ) -> None:
        metadata = metadata_for(self._objects.resolve_type(plan.target_type))
        upper_prefix = prefix.upper() if prefix else ""
        for column in rsw.unmapped_column_names(plan, prefix):
            name = column
            if upper_prefix:
                # With a prefix, columns outside it belong to other plans
                if not column.upper().startswith(upper_prefix):
                    continue
                name = column[len(upper_prefix) :]
            if metadata.find_property(name, self._camel_case) is not None:
                value = rsw.raw(column)
                if value is not None:
                    identity.update(column.upper())
                    identity.update(value)

    def _all_columns(self, rsw: ResultSetWrapper, identity: RowIdentity) -> None:
        for column in rsw.columns:
            value = rsw.raw(column)
            if value is not None:
                identity.update(column.upper())
                identity.update(value)
