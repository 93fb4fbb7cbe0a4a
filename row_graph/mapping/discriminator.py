"""Discriminator resolution.

Narrows a plan to the most specific plan for the current row by
following discriminator cases until no case applies.
"""

from __future__ import annotations

import logging

from row_graph.mapping.plan import Discriminator, MappingPlan, prepend_prefix
from row_graph.mapping.registry import PlanRegistry
from row_graph.mapping.result_set import ResultSetWrapper

logger = logging.getLogger(__name__)


def discriminator_value(
    plan: MappingPlan,
    discriminator: Discriminator,
    rsw: ResultSetWrapper,
    prefix: str | None,
) -> str:
    """Read the tag column and stringify it for the case table."""
    column = prepend_prefix(discriminator.column, prefix) or discriminator.column
    value = rsw.read(
        column,
        discriminator.value_type,
        discriminator.converter,
        plan_id=plan.plan_id,
        property_name=None,
    )
    return str(value)


def resolve_discriminated_plan(
    plans: PlanRegistry,
    rsw: ResultSetWrapper,
    plan: MappingPlan,
    prefix: str | None,
) -> MappingPlan:
    """Return the most specific plan applicable to the current row.

    Resolution stops when the current plan has no discriminator, when the
    case value has no known target plan, when the next plan carries the
    same discriminator object, or when a plan id repeats in this chain.
    """
    visited: set[str] = set()
    discriminator = plan.discriminator
    while discriminator is not None:
        value = discriminator_value(plan, discriminator, rsw, prefix)
        target_id = discriminator.plan_id_for(value)
        if target_id is None or not plans.has(target_id):
            break
        plan = plans.get(target_id)
        previous = discriminator
        discriminator = plan.discriminator
        if discriminator is previous or target_id in visited:
            logger.debug("Discriminator chain stops at plan '%s' (cycle)", target_id)
            break
        visited.add(target_id)
    return plan
