"""Object construction strategies.

Strategies are tried in order:

1. Primitive projection - the target type has a converter for the row's
   shape; the converted column is the result.
2. Explicit constructor mapping - constructor arguments declared on the
   plan, evaluated in declaration order.
3. Default construction - the type can be created with no arguments.
4. Implicit constructor matching - a constructor whose parameters take
   the row's columns positionally.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from row_graph.core.config import Configuration
from row_graph.core.enums import ValueSource
from row_graph.core.exceptions import ConfigurationError
from row_graph.core.objects import ConstructorInfo, metadata_for
from row_graph.mapping.nested import nested_column_prefix
from row_graph.mapping.plan import FieldMapping, MappingPlan, prepend_prefix
from row_graph.mapping.result_set import ResultSetWrapper

NestedPlanValue = Callable[[ResultSetWrapper, MappingPlan, "str | None"], Any]
NestedQueryValue = Callable[[ResultSetWrapper, FieldMapping, "str | None", str], Any]


def _type_name(cls: Any) -> str:
    return getattr(cls, "__name__", repr(cls))


class ObjectConstructor:
    """Creates the result object for a plan from the current row."""

    def __init__(
        self,
        configuration: Configuration,
        nested_plan_value: NestedPlanValue,
        nested_query_value: NestedQueryValue,
    ) -> None:
        self._configuration = configuration
        self._converters = configuration.converters
        self._objects = configuration.objects
        self._nested_plan_value = nested_plan_value
        self._nested_query_value = nested_query_value

    def has_converter_for_result_object(self, rsw: ResultSetWrapper, target_type: Any) -> bool:
        """Whether rows of this shape convert directly into ``target_type``."""
        if len(rsw.columns) == 1:
            return self._converters.has_converter(target_type, rsw.column_type(rsw.columns[0]))
        return self._converters.has_converter(target_type)

    def create(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        prefix: str | None,
        allow_signature_matching: bool,
    ) -> tuple[Any, bool]:
        """Create the result object.

        Returns:
            The object (or None when a constructor received only nulls) and
            whether constructor arguments were used to build it.

        Raises:
            ConfigurationError: If no strategy can create the type.
        """
        target_type = plan.target_type
        if self.has_converter_for_result_object(rsw, target_type):
            return self._primitive(rsw, plan, prefix), False
        if plan.constructor_mappings:
            return self._parameterized(rsw, plan, prefix)
        if self._objects.can_create_default(target_type):
            return self._objects.new_instance(target_type), False
        if allow_signature_matching:
            return self._by_constructor_signature(rsw, plan, prefix)
        raise ConfigurationError(f"Do not know how to create an instance of {_type_name(target_type)}")

    def _primitive(self, rsw: ResultSetWrapper, plan: MappingPlan, prefix: str | None) -> Any:
        if plan.mappings and plan.mappings[0].column is not None:
            column = prepend_prefix(plan.mappings[0].column, prefix) or plan.mappings[0].column
        else:
            column = rsw.columns[0]
        return rsw.read(column, plan.target_type, plan_id=plan.plan_id)

    def _parameterized(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        prefix: str | None,
    ) -> tuple[Any, bool]:
        values: list[Any] = []
        names: list[str | None] = []
        found = False
        for mapping in plan.constructor_mappings:
            if mapping.source is ValueSource.NESTED_QUERY:
                value = self._nested_query_value(rsw, mapping, prefix, plan.plan_id)
            elif mapping.source is ValueSource.NESTED_PLAN:
                nested = self._configuration.plans.get(mapping.nested_plan_id)
                value = self._nested_plan_value(rsw, nested, nested_column_prefix(prefix, mapping))
            else:
                column = prepend_prefix(mapping.column, prefix)
                value = (
                    rsw.read(
                        column,
                        mapping.value_type,
                        mapping.converter,
                        plan_id=plan.plan_id,
                        property_name=mapping.property,
                    )
                    if column is not None
                    else None
                )
            values.append(value)
            names.append(mapping.property)
            found = found or value is not None
        if not found and not self._configuration.settings.return_instance_for_empty_row:
            return None, False
        return self._objects.new_instance(plan.target_type, values, names), True

    def _select_constructor(
        self,
        rsw: ResultSetWrapper,
        candidates: tuple[ConstructorInfo, ...],
        columns: list[str],
    ) -> ConstructorInfo | None:
        canonical = [c for c in candidates if c.canonical]
        if len(canonical) == 1:
            return canonical[0]
        if not canonical and len(candidates) == 1:
            return candidates[0]
        for candidate in candidates:
            if len(candidate.parameters) != len(columns):
                continue
            if all(
                self._converters.has_converter(param_type, rsw.column_type(column))
                for (_, param_type), column in zip(candidate.parameters, columns, strict=True)
            ):
                return candidate
        return None

    def _by_constructor_signature(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        prefix: str | None,
    ) -> tuple[Any, bool]:
        target_type = plan.target_type
        columns = rsw.columns
        if prefix:
            upper = prefix.upper()
            columns = [column for column in columns if column.upper().startswith(upper)]
        metadata = metadata_for(self._objects.resolve_type(target_type))
        constructor = self._select_constructor(rsw, metadata.constructors, columns)
        if constructor is None or len(constructor.parameters) > len(columns):
            raise ConfigurationError(
                f"No constructor found in {_type_name(target_type)} matching columns {columns}"
            )
        values: list[Any] = []
        names: list[str | None] = []
        found = False
        for (name, param_type), column in zip(constructor.parameters, columns, strict=False):
            value = rsw.read(column, param_type, plan_id=plan.plan_id, property_name=name)
            values.append(value)
            names.append(name)
            found = found or value is not None
        if not found:
            return None, False
        instance = self._objects.new_instance(
            target_type, values, names, factory=constructor.factory
        )
        return instance, True
