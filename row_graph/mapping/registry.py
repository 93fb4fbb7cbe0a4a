"""Plan registry - immutable lookup of mapping plans and statements.

Plans reference each other by id (nested plans, discriminator cases), so
the registry is the one place ids are resolved.
"""

from __future__ import annotations

from collections.abc import Iterable

from row_graph.core.exceptions import (
    DuplicatePlanError,
    PlanCompilationError,
    PlanNotFoundError,
    StatementNotFoundError,
)
from row_graph.mapping.plan import MappingPlan, StatementMapping


class PlanRegistry:
    """Holds the resolved plan set.

    The registry is immutable after construction: build once at startup,
    then read-only access for the lifetime of the application, from any
    number of threads.

    Args:
        plans: Compiled mapping plans.
        statements: Statement mappings naming which plans a statement's
            result sets use.

    Raises:
        DuplicatePlanError: If two plans or two statements share an id.
        PlanCompilationError: If a nested plan reference cannot be resolved.
    """

    def __init__(
        self,
        plans: Iterable[MappingPlan],
        statements: Iterable[StatementMapping] = (),
    ) -> None:
        self._plans: dict[str, MappingPlan] = {}
        self._statements: dict[str, StatementMapping] = {}
        for plan in plans:
            if plan.plan_id in self._plans:
                raise DuplicatePlanError(plan.plan_id)
            self._plans[plan.plan_id] = plan
        for statement in statements:
            if statement.statement_id in self._statements:
                raise DuplicatePlanError(statement.statement_id)
            self._statements[statement.statement_id] = statement
        self._validate()

    def _validate(self) -> None:
        """Check that every referenced plan id exists.

        Discriminator cases are not checked: an unknown case target simply
        ends discriminator resolution at the current plan.
        """
        for plan in self._plans.values():
            for mapping in plan.mappings:
                if mapping.nested_plan_id is not None and mapping.nested_plan_id not in self._plans:
                    raise PlanCompilationError(
                        f"Plan '{plan.plan_id}' property '{mapping.property}' references "
                        f"unknown nested plan '{mapping.nested_plan_id}'"
                    )
        for statement in self._statements.values():
            for plan_id in statement.plan_ids:
                if plan_id not in self._plans:
                    raise PlanCompilationError(
                        f"Statement '{statement.statement_id}' references unknown plan '{plan_id}'"
                    )

    def get(self, plan_id: str) -> MappingPlan:
        """Look up a plan by id.

        Raises:
            PlanNotFoundError: If no plan has the given id.
        """
        try:
            return self._plans[plan_id]
        except KeyError:
            raise PlanNotFoundError(plan_id) from None

    def has(self, plan_id: str) -> bool:
        """Check if a plan id is registered."""
        return plan_id in self._plans

    def statement(self, statement_id: str) -> StatementMapping:
        """Look up a statement mapping by id.

        Raises:
            StatementNotFoundError: If no statement has the given id.
        """
        try:
            return self._statements[statement_id]
        except KeyError:
            raise StatementNotFoundError(statement_id) from None

    @property
    def plan_ids(self) -> list[str]:
        """List all registered plan ids, sorted alphabetically."""
        return sorted(self._plans.keys())

    def __len__(self) -> int:
        """Number of registered plans."""
        return len(self._plans)
