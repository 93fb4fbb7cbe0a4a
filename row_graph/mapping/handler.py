"""Result set handler - turns the cursors of one statement into objects.

One handler serves exactly one materialization call. It owns every piece
of per-call mutable state: the identity cache that deduplicates repeated
join rows, the ancestor frame that closes reference cycles, the pending
relations waiting on later result sets, and the automatic-mapping cache.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from typing import Any

from row_graph.adapters.protocol import NestedQueryExecutor, RowCursor
from row_graph.core.config import Configuration
from row_graph.core.exceptions import (
    ConfigurationError,
    ResultMapError,
    RowGraphError,
    UnsafeResultHandlerError,
    UnsafeRowWindowError,
)
from row_graph.mapping.constructor import ObjectConstructor
from row_graph.mapping.correlator import MultiResultCorrelator
from row_graph.mapping.discriminator import resolve_discriminated_plan
from row_graph.mapping.identity import (
    NULL_IDENTITY,
    RowIdentity,
    RowIdentityBuilder,
    combine_identities,
)
from row_graph.mapping.lazy import LazyLoaderMap, NestedQueryResolver
from row_graph.mapping.nested import (
    AncestorFrame,
    any_not_null_column_has_value,
    instantiate_collection_if_appropriate,
    link_objects,
    nested_column_prefix,
)
from row_graph.mapping.plan import (
    UNBOUNDED,
    FieldMapping,
    MappingPlan,
    RowWindow,
    StatementMapping,
)
from row_graph.mapping.populator import PropertyPopulator
from row_graph.mapping.result_set import ResultSetWrapper

logger = logging.getLogger(__name__)

Consumer = Callable[[Any], None]


class ResultSetHandler:
    """Materializes the result sets of one statement execution.

    Args:
        configuration: Shared immutable configuration.
        statement: The statement whose cursors are being read.
        window: Offset/limit applied to the top-level rows.
        query_executor: Runs nested queries; required only by plans that
            declare them.
    """

    def __init__(
        self,
        configuration: Configuration,
        statement: StatementMapping,
        window: RowWindow = UNBOUNDED,
        query_executor: NestedQueryExecutor | None = None,
    ) -> None:
        self._configuration = configuration
        self._plans = configuration.plans
        self._settings = configuration.settings
        self._objects = configuration.objects
        self._statement = statement
        self._window = window

        self._identity_cache: dict[RowIdentity, Any] = {}
        self._ancestors = AncestorFrame()
        self._correlator = MultiResultCorrelator()
        self._nested_queries = NestedQueryResolver(query_executor)
        self._populator = PropertyPopulator(configuration, self._correlator, self._nested_queries)
        self._constructor = ObjectConstructor(
            configuration,
            self._nested_constructor_value,
            self._nested_queries.constructor_value,
        )
        self._identities = RowIdentityBuilder(
            self._plans,
            self._objects,
            camel_case=self._settings.map_underscore_to_camel_case,
            keep_empty_values=self._settings.return_instance_for_empty_row,
        )

    # -- Entry points -------------------------------------------------------

    def handle_result_sets(
        self,
        cursors: Sequence[RowCursor],
        consumer: Consumer | None = None,
    ) -> list[list[Any]]:
        """Read every cursor and return one result list per mapped result set.

        With a ``consumer`` each top-level object is handed to it instead
        and no lists are collected. Every cursor is closed before return,
        on success and on error.

        Raises:
            ConfigurationError: If there are more cursors than plans and
                named result sets, or cursors but no plan.
        """
        wrappers = [ResultSetWrapper(cursor, self._configuration.converters) for cursor in cursors]
        results: list[list[Any]] = []
        try:
            self._validate_cursor_count(len(wrappers))
            plan_ids = self._statement.plan_ids
            index = 0
            while index < len(wrappers) and index < len(plan_ids):
                plan = self._plans.get(plan_ids[index])
                collected = self._handle_result_set(wrappers[index], plan, consumer)
                if consumer is None:
                    results.append(collected)
                self._clean_up_after_result_set()
                index += 1

            result_sets = self._statement.result_sets or ()
            while index < len(wrappers):
                parent_mapping = self._correlator.parent_mapping(result_sets[index])
                if parent_mapping is not None:
                    nested = self._plans.get(str(parent_mapping.nested_plan_id))
                    self._handle_linked_result_set(wrappers[index], nested, parent_mapping)
                else:
                    logger.debug("No pending relation for result set '%s'", result_sets[index])
                self._clean_up_after_result_set()
                index += 1
        finally:
            for wrapper in wrappers:
                wrapper.close()
        return results

    def iterate(self, cursor: RowCursor) -> Iterator[Any]:
        """Yield top-level objects of a single-plan statement one at a time.

        The cursor is closed when the generator is exhausted, fails, or is
        closed early.
        """
        rsw = ResultSetWrapper(cursor, self._configuration.converters)
        try:
            plan_ids = self._statement.plan_ids
            if len(plan_ids) != 1:
                raise ConfigurationError(
                    f"Cursor results require exactly one plan, statement "
                    f"'{self._statement.statement_id}' declares {len(plan_ids)}"
                )
            plan = self._plans.get(plan_ids[0])
            self._check_window(plan)
            self._check_consumer(plan)
            yield from self._row_values(rsw, plan, self._window)
        finally:
            rsw.close()

    # -- Result set passes --------------------------------------------------

    def _validate_cursor_count(self, cursor_count: int) -> None:
        if cursor_count == 0:
            return
        if not self._statement.plan_ids:
            raise ConfigurationError(
                f"A query returned results but statement '{self._statement.statement_id}' "
                "declares no mapping plan"
            )
        declared = max(len(self._statement.plan_ids), len(self._statement.result_sets or ()))
        if cursor_count > declared:
            raise ConfigurationError(
                f"Statement '{self._statement.statement_id}' returned {cursor_count} result sets "
                f"but declares {declared}"
            )

    def _handle_result_set(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        consumer: Consumer | None,
    ) -> list[Any]:
        logger.debug("Mapping result set with plan '%s'", plan.plan_id)
        self._check_window(plan)
        if consumer is not None:
            self._check_consumer(plan)
        collected: list[Any] = []
        sink = consumer if consumer is not None else collected.append
        for value in self._row_values(rsw, plan, self._window):
            sink(value)
        return collected

    def _handle_linked_result_set(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        parent_mapping: FieldMapping,
    ) -> None:
        logger.debug(
            "Linking result set '%s' into '%s'", parent_mapping.result_set, parent_mapping.property
        )
        for value in self._row_values(rsw, plan, UNBOUNDED, linking=True):
            self._correlator.link_to_parents(rsw, parent_mapping, value, self._link)

    def _link(self, holder: Any, mapping: FieldMapping, value: Any) -> None:
        link_objects(self._objects, holder, mapping, value)

    def _clean_up_after_result_set(self) -> None:
        self._identity_cache.clear()
        self._populator.clear_cache()

    def _check_window(self, plan: MappingPlan) -> None:
        if not self._window.is_bounded:
            return
        if self._statement.result_ordered:
            raise UnsafeRowWindowError(
                "Ordered results cannot be combined with a bounded row window: "
                "a window could cut a parent object mid-stream"
            )
        if plan.has_nested_plans and self._settings.safe_row_window_enabled:
            raise UnsafeRowWindowError(
                f"Plan '{plan.plan_id}' maps nested results and cannot be used with a "
                "bounded row window. Disable safe_row_window_enabled to bypass this check."
            )

    def _check_consumer(self, plan: MappingPlan) -> None:
        if (
            plan.has_nested_plans
            and self._settings.safe_result_handler_enabled
            and not self._statement.result_ordered
        ):
            raise UnsafeResultHandlerError(
                f"Plan '{plan.plan_id}' maps nested results: a per-row consumer would see "
                "partially built objects. Mark the statement result_ordered or disable "
                "safe_result_handler_enabled."
            )

    # -- Row loops ----------------------------------------------------------

    def _advance(self, rsw: ResultSetWrapper, plan: MappingPlan) -> bool:
        try:
            return rsw.next()
        except RowGraphError:
            raise
        except Exception as e:
            raise ResultMapError(
                plan.plan_id, None, None, rsw.row_number + 1, f"Error reading row: {e}"
            ) from e

    def _row_values(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        window: RowWindow,
        linking: bool = False,
    ) -> Iterator[Any]:
        rsw.skip(window.offset)
        if plan.has_nested_plans:
            yield from self._nested_row_values(rsw, plan, window, linking)
        else:
            yield from self._simple_row_values(rsw, plan, window)

    def _simple_row_values(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        window: RowWindow,
    ) -> Iterator[Any]:
        stored = 0
        while (window.limit is None or stored < window.limit) and self._advance(rsw, plan):
            resolved = resolve_discriminated_plan(self._plans, rsw, plan, None)
            value = self._get_row_value(rsw, resolved, None)
            if value is not None:
                stored += 1
                yield value

    def _nested_row_values(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        window: RowWindow,
        linking: bool,
    ) -> Iterator[Any]:
        ordered = self._statement.result_ordered and not linking
        stored = 0
        row_value: Any = None
        while (window.limit is None or stored < window.limit) and self._advance(rsw, plan):
            resolved = resolve_discriminated_plan(self._plans, rsw, plan, None)
            row_key = self._identities.build(resolved, rsw, None)
            partial = self._identity_cache.get(row_key)
            if ordered:
                if partial is None and row_value is not None:
                    logger.debug("Ordered results: flushing object for plan '%s'", plan.plan_id)
                    self._identity_cache.clear()
                    stored += 1
                    yield row_value
                row_value = self._get_nested_row_value(rsw, resolved, row_key, None, partial)
            else:
                row_value = self._get_nested_row_value(rsw, resolved, row_key, None, partial)
                if partial is None and row_value is not None:
                    stored += 1
                    yield row_value
        if ordered and row_value is not None and (window.limit is None or stored < window.limit):
            yield row_value

    # -- Row values ---------------------------------------------------------

    def _create_and_populate(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        prefix: str | None,
        nested: bool,
        nested_identity: RowIdentity | None = None,
    ) -> Any:
        lazy_loader = LazyLoaderMap()
        allow_auto = self._populator.should_apply_automatic_mappings(plan, nested)
        value, used_constructor = self._constructor.create(
            rsw, plan, prefix, self._populator.should_apply_automatic_mappings(plan, False)
        )
        if value is None or self._constructor.has_converter_for_result_object(rsw, plan.target_type):
            return value
        found = used_constructor
        if allow_auto:
            found = self._populator.apply_automatic_mappings(rsw, plan, value, prefix) or found
        found = self._populator.apply_property_mappings(rsw, plan, value, lazy_loader, prefix) or found
        if nested_identity is not None:
            with self._ancestors.entered(plan.plan_id, value):
                found = (
                    self._apply_nested_result_mappings(rsw, plan, value, prefix, nested_identity, True)
                    or found
                )
        found = len(lazy_loader) > 0 or found
        if found or self._settings.return_instance_for_empty_row:
            return value
        return None

    def _get_row_value(self, rsw: ResultSetWrapper, plan: MappingPlan, prefix: str | None) -> Any:
        return self._create_and_populate(rsw, plan, prefix, nested=False)

    def _nested_constructor_value(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        prefix: str | None,
    ) -> Any:
        resolved = resolve_discriminated_plan(self._plans, rsw, plan, prefix)
        return self._get_row_value(rsw, resolved, prefix)

    def _get_nested_row_value(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        combined_key: RowIdentity,
        prefix: str | None,
        partial: Any,
    ) -> Any:
        if partial is not None:
            with self._ancestors.entered(plan.plan_id, partial):
                self._apply_nested_result_mappings(rsw, plan, partial, prefix, combined_key, False)
            value = partial
        else:
            value = self._create_and_populate(
                rsw, plan, prefix, nested=True, nested_identity=combined_key
            )
        if combined_key is not NULL_IDENTITY and value is not None:
            self._identity_cache[combined_key] = value
        return value

    def _apply_nested_result_mappings(
        self,
        rsw: ResultSetWrapper,
        plan: MappingPlan,
        holder: Any,
        parent_prefix: str | None,
        parent_key: RowIdentity,
        new_object: bool,
    ) -> bool:
        found = False
        for mapping in plan.property_mappings:
            if not mapping.is_joined_nested:
                continue
            nested_plan_id = str(mapping.nested_plan_id)
            prefix = nested_column_prefix(parent_prefix, mapping)
            nested = resolve_discriminated_plan(
                self._plans, rsw, self._plans.get(nested_plan_id), prefix
            )
            if mapping.column_prefix is None:
                ancestor = self._ancestors.get(nested_plan_id)
                if ancestor is not None:
                    if new_object:
                        link_objects(self._objects, holder, mapping, ancestor)
                    continue

            row_key = self._identities.build(nested, rsw, prefix)
            combined_key = combine_identities(row_key, parent_key)
            row_value = self._identity_cache.get(combined_key)
            known_value = row_value is not None
            instantiate_collection_if_appropriate(self._objects, holder, mapping)
            if any_not_null_column_has_value(rsw, mapping, prefix, plan.plan_id):
                row_value = self._get_nested_row_value(rsw, nested, combined_key, prefix, row_value)
                if row_value is not None and not known_value:
                    link_objects(self._objects, holder, mapping, row_value)
                    found = True
        return found
