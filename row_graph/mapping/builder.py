"""Mapping plan DSL builder.

Provides a fluent builder for defining mapping plans::

    blog = (
        plan_for(Blog)
        .id("id", column="blog_id")
        .result("title", column="blog_title")
        .collection("posts", "Post", column_prefix="post_")
        .build()
    )
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from row_graph.core.enums import FieldFlag
from row_graph.core.exceptions import PlanCompilationError
from row_graph.mapping.plan import Discriminator, FieldMapping, MappingPlan


def plan_for(target_type: Any, plan_id: str | None = None) -> MappingPlanBuilder:
    """Entry point for the mapping plan DSL.

    Args:
        target_type: The class (or ``dict``) rows are materialized into.
        plan_id: Plan id other plans refer to. Defaults to the class name.

    Returns:
        A builder for chaining mapping declarations.
    """
    if plan_id is None:
        plan_id = getattr(target_type, "__name__", None) or str(target_type)
    return MappingPlanBuilder(plan_id, target_type)


def _composites(columns: Mapping[str, str]) -> tuple[FieldMapping, ...]:
    return tuple(FieldMapping(property=name, column=column) for name, column in columns.items())


class MappingPlanBuilder:
    """Fluent builder for mapping plan definitions."""

    def __init__(self, plan_id: str, target_type: Any) -> None:
        self._plan_id = plan_id
        self._target_type = target_type
        self._mappings: list[FieldMapping] = []
        self._discriminator: Discriminator | None = None
        self._auto_mapping: bool | None = None

    def id(
        self,
        property_name: str,
        column: str | None = None,
        *,
        value_type: Any = None,
        converter: Callable[[Any], Any] | None = None,
    ) -> MappingPlanBuilder:
        """Map an identity property; identity columns drive row deduplication."""
        self._mappings.append(
            FieldMapping(
                property=property_name,
                column=column or property_name,
                value_type=value_type,
                converter=converter,
                flags=frozenset({FieldFlag.IDENTITY}),
            )
        )
        return self

    def result(
        self,
        property_name: str,
        column: str | None = None,
        *,
        value_type: Any = None,
        converter: Callable[[Any], Any] | None = None,
    ) -> MappingPlanBuilder:
        """Explicitly map a single property to a column."""
        self._mappings.append(
            FieldMapping(
                property=property_name,
                column=column or property_name,
                value_type=value_type,
                converter=converter,
            )
        )
        return self

    def constructor_arg(
        self,
        name: str | None,
        column: str | Mapping[str, str] | None = None,
        *,
        identity: bool = False,
        value_type: Any = None,
        converter: Callable[[Any], Any] | None = None,
        nested_plan: str | None = None,
        nested_query: str | None = None,
        column_prefix: str | None = None,
    ) -> MappingPlanBuilder:
        """Declare the next constructor argument, in declaration order.

        A ``None`` name passes the argument positionally.
        """
        flags = {FieldFlag.CONSTRUCTOR}
        if identity:
            flags.add(FieldFlag.IDENTITY)
        if isinstance(column, Mapping):
            composites, column = _composites(column), None
        else:
            composites = ()
            if column is None and nested_plan is None and nested_query is None:
                column = name
        self._mappings.append(
            FieldMapping(
                property=name,
                column=column,
                value_type=value_type,
                converter=converter,
                nested_plan_id=nested_plan,
                nested_query_id=nested_query,
                composites=composites,
                flags=frozenset(flags),
                column_prefix=column_prefix,
            )
        )
        return self

    def association(
        self,
        property_name: str,
        nested_plan: str | None = None,
        *,
        nested_query: str | None = None,
        column: str | Mapping[str, str] | None = None,
        column_prefix: str | None = None,
        not_null: Iterable[str] = (),
        lazy: bool = False,
        result_set: str | None = None,
        foreign_column: str | None = None,
        value_type: Any = None,
    ) -> MappingPlanBuilder:
        """Declare a single related object (many-to-one or one-to-one)."""
        self._mappings.append(
            self._related(
                property_name,
                nested_plan,
                nested_query,
                column,
                column_prefix,
                not_null,
                lazy,
                result_set,
                foreign_column,
                value_type,
            )
        )
        return self

    def collection(
        self,
        property_name: str,
        nested_plan: str | None = None,
        *,
        nested_query: str | None = None,
        column: str | Mapping[str, str] | None = None,
        column_prefix: str | None = None,
        not_null: Iterable[str] = (),
        lazy: bool = False,
        result_set: str | None = None,
        foreign_column: str | None = None,
        value_type: Any = list,
    ) -> MappingPlanBuilder:
        """Declare a child collection (one-to-many)."""
        self._mappings.append(
            self._related(
                property_name,
                nested_plan,
                nested_query,
                column,
                column_prefix,
                not_null,
                lazy,
                result_set,
                foreign_column,
                value_type,
            )
        )
        return self

    def _related(
        self,
        property_name: str,
        nested_plan: str | None,
        nested_query: str | None,
        column: str | Mapping[str, str] | None,
        column_prefix: str | None,
        not_null: Iterable[str],
        lazy: bool,
        result_set: str | None,
        foreign_column: str | None,
        value_type: Any,
    ) -> FieldMapping:
        if (nested_plan is None) == (nested_query is None):
            raise PlanCompilationError(
                f"Property '{property_name}' of plan '{self._plan_id}' must name exactly "
                "one of nested_plan or nested_query"
            )
        if result_set is not None:
            if nested_plan is None:
                raise PlanCompilationError(
                    f"Property '{property_name}' reads result set '{result_set}' "
                    "and needs a nested_plan for its rows"
                )
            if not isinstance(column, str) or foreign_column is None:
                raise PlanCompilationError(
                    f"Property '{property_name}' reads result set '{result_set}' "
                    "and needs both column and foreign_column"
                )
            if len(column.split(",")) != len(foreign_column.split(",")):
                raise PlanCompilationError(
                    f"Property '{property_name}': column '{column}' and foreign_column "
                    f"'{foreign_column}' name different numbers of columns"
                )
        if lazy and nested_query is None:
            raise PlanCompilationError(
                f"Property '{property_name}': only nested queries can be lazy"
            )
        composites: tuple[FieldMapping, ...] = ()
        if isinstance(column, Mapping):
            composites, column = _composites(column), None
        return FieldMapping(
            property=property_name,
            column=column,
            value_type=value_type,
            nested_plan_id=nested_plan,
            nested_query_id=nested_query,
            composites=composites,
            not_null_columns=frozenset(not_null),
            column_prefix=column_prefix,
            result_set=result_set,
            foreign_column=foreign_column,
            lazy=lazy,
        )

    def discriminator(
        self,
        column: str,
        cases: Mapping[Any, str],
        *,
        value_type: Any = None,
        converter: Callable[[Any], Any] | None = None,
    ) -> MappingPlanBuilder:
        """Select a more specific plan per row from a tag column value."""
        self._discriminator = Discriminator(
            column=column,
            cases={str(value): plan_id for value, plan_id in cases.items()},
            value_type=value_type,
            converter=converter,
        )
        return self

    def auto_mapping(self, enabled: bool = True) -> MappingPlanBuilder:
        """Override the configured automatic mapping behavior for this plan."""
        self._auto_mapping = enabled
        return self

    def build(self) -> MappingPlan:
        """Compile and validate the mapping into a MappingPlan."""
        if not self._plan_id:
            raise PlanCompilationError("Mapping plans must have an id")

        seen: set[str] = set()
        for mapping in self._mappings:
            if mapping.property is None or mapping.is_constructor_arg:
                continue
            if mapping.property in seen:
                raise PlanCompilationError(
                    f"Property '{mapping.property}' is mapped twice in plan '{self._plan_id}'"
                )
            seen.add(mapping.property)

        return MappingPlan(
            plan_id=self._plan_id,
            target_type=self._target_type,
            mappings=tuple(self._mappings),
            discriminator=self._discriminator,
            auto_mapping=self._auto_mapping,
        )
