"""Property population: explicit mappings and automatic (reflective) mapping."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from row_graph.core.config import Configuration
from row_graph.core.converters import Converter
from row_graph.core.enums import AutoMappingBehavior, UnknownColumnBehavior, ValueSource
from row_graph.core.exceptions import ResultMapError, UnknownColumnError
from row_graph.core.objects import (
    is_nullable_property,
    metadata_for,
    property_type,
    set_validated,
    set_value,
)
from row_graph.mapping.correlator import MultiResultCorrelator
from row_graph.mapping.lazy import DEFERRED, LazyLoaderMap, NestedQueryResolver
from row_graph.mapping.plan import FieldMapping, MappingPlan, prepend_prefix
from row_graph.mapping.result_set import ResultSetWrapper

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AutoMapping:
    """An unmapped column matched to a settable property."""

    column: str
    property: str
    converter: Converter
    nullable: bool


class PropertyPopulator:
    """Fills properties of a freshly created object from the current row.

    Automatic mappings are computed once per (plan, prefix) and reused for
    every following row until ``clear_cache`` is called.
    """

    def __init__(
        self,
        configuration: Configuration,
        correlator: MultiResultCorrelator,
        nested_queries: NestedQueryResolver,
    ) -> None:
        self._settings = configuration.settings
        self._converters = configuration.converters
        self._correlator = correlator
        self._nested_queries = nested_queries
        self._auto_cache: dict[str, list[AutoMapping]] = {}

    def clear_cache(self) -> None:
        self._auto_cache.clear()

    def should_apply_automatic_mappings(self, plan: MappingPlan, nested: bool) -> bool:
        """Resolve whether automatic mapping runs for ``plan``.

        A per-plan setting wins. Otherwise nested plans auto-map only under
        FULL behavior, and flat plans under anything but NONE.
        """
        if plan.auto_mapping is not None:
            return plan.auto_mapping
        behavior = self._settings.auto_mapping_behavior
        if nested:
            return behavior is AutoMappingBehavior.FULL
        return behavior is not AutoMappingBehavior.NONE

    # -- Explicit mappings --------------------------------------------------

    def apply_property_mappings(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        target: Any,
        lazy_loader: LazyLoaderMap,
        prefix: str | None,
    ) -> bool:
        """Apply the plan's property mappings; True if any produced a value."""
        found = False
        for mapping in plan.property_mappings:
            if not self._has_row_value(rsw, plan, mapping, prefix):
                continue
            value = self._property_mapping_value(rsw, plan, target, mapping, lazy_loader, prefix)
            name = mapping.property
            if name is None:
                continue
            if value is DEFERRED:
                found = True
                continue
            if value is not None:
                found = True
            if value is not None or (
                self._settings.call_setters_on_nulls and is_nullable_property(target, name)
            ):
                if mapping.source is ValueSource.COLUMN:
                    self._assign(rsw, plan, target, name, prepend_prefix(mapping.column, prefix), value)
                else:
                    set_value(target, name, value)
        return found

    @staticmethod
    def _has_row_value(
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        mapping: FieldMapping,
        prefix: str | None,
    ) -> bool:
        source = mapping.source
        if source is ValueSource.RESULT_SET:
            return True
        if source is ValueSource.NESTED_QUERY and mapping.is_composite:
            return True
        if source in (ValueSource.COLUMN, ValueSource.NESTED_QUERY):
            column = prepend_prefix(mapping.column, prefix)
            return column is not None and rsw.is_mapped(plan, prefix, column)
        # Joined nested plans are filled by the nested recursion
        return False

    def _property_mapping_value(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        target: Any,
        mapping: FieldMapping,
        lazy_loader: LazyLoaderMap,
        prefix: str | None,
    ) -> Any:
        if mapping.source is ValueSource.NESTED_QUERY:
            return self._nested_queries.property_value(
                rsw, target, mapping, lazy_loader, prefix, plan.plan_id
            )
        if mapping.source is ValueSource.RESULT_SET:
            self._correlator.add_pending(rsw, target, mapping)
            return DEFERRED
        column = prepend_prefix(mapping.column, prefix)
        if column is None:
            return None
        value_type = mapping.value_type or property_type(target, mapping.property)
        return rsw.read(
            column,
            value_type,
            mapping.converter,
            plan_id=plan.plan_id,
            property_name=mapping.property,
        )

    @staticmethod
    def _assign(
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        target: Any,
        name: str,
        column: str | None,
        value: Any,
    ) -> None:
        try:
            set_validated(target, name, value)
        except ValidationError as e:
            raise ResultMapError(plan.plan_id, name, column, rsw.row_number, str(e)) from e

    # -- Automatic mappings -------------------------------------------------

    def apply_automatic_mappings(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        target: Any,
        prefix: str | None,
    ) -> bool:
        """Map unmapped columns onto same-named properties; True if any was non-null."""
        found = False
        for auto in self._automatic_mappings(rsw, plan, target, prefix):
            value = rsw.read(
                auto.column,
                converter=auto.converter,
                plan_id=plan.plan_id,
                property_name=auto.property,
            )
            if value is not None:
                found = True
            if value is not None or (self._settings.call_setters_on_nulls and auto.nullable):
                self._assign(rsw, plan, target, auto.property, auto.column, value)
        return found

    def _automatic_mappings(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        target: Any,
        prefix: str | None,
    ) -> list[AutoMapping]:
        key = f"{plan.plan_id}:{prefix}"
        cached = self._auto_cache.get(key)
        if cached is not None:
            return cached

        keyed = isinstance(target, Mapping)
        metadata = None if keyed else metadata_for(type(target))
        camel_case = self._settings.map_underscore_to_camel_case
        upper_prefix = prefix.upper() if prefix else ""
        result: list[AutoMapping] = []
        for column in rsw.unmapped_column_names(plan, prefix):
            name = column
            if upper_prefix:
                # With a prefix, columns outside it belong to other plans
                if not column.upper().startswith(upper_prefix):
                    continue
                name = column[len(upper_prefix) :]

            if metadata is None:
                found_property: str | None = name
                settable = True
                target_type: Any = object
                nullable = True
            else:
                found_property = metadata.find_property(name, camel_case)
                settable = found_property is not None and metadata.has_setter(found_property)
                target_type = metadata.setter_type(found_property) if settable else None
                nullable = metadata.is_nullable(found_property) if settable else True

            if found_property is None or not settable:
                self._unknown_column(plan, column, found_property or name, None)
                continue
            if found_property in plan.mapped_properties:
                continue
            converter = self._converters.converter(target_type, rsw.column_type(column))
            if converter is None:
                self._unknown_column(plan, column, found_property, target_type)
                continue
            result.append(AutoMapping(column, found_property, converter, nullable))

        self._auto_cache[key] = result
        return result

    def _unknown_column(
        self,
        plan: MappingPlan,
        column: str,
        property_name: str,
        property_type: Any,
    ) -> None:
        behavior = self._settings.unknown_column_behavior
        if behavior is UnknownColumnBehavior.IGNORE:
            return
        if behavior is UnknownColumnBehavior.WARN:
            logger.warning(
                "Unknown column detected while auto-mapping '%s': "
                "column=%s property=%s property_type=%s",
                plan.plan_id,
                column,
                property_name,
                property_type,
            )
            return
        raise UnknownColumnError(plan.plan_id, column, property_name)
