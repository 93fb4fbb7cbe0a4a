"""Mapping layer - turn rows into object graphs."""

from __future__ import annotations

from row_graph.mapping.builder import MappingPlanBuilder, plan_for
from row_graph.mapping.lazy import DeferredValue, LazyLoadable, resolve_deferred
from row_graph.mapping.materializer import Materializer
from row_graph.mapping.plan import (
    Discriminator,
    FieldMapping,
    MappingPlan,
    RowWindow,
    StatementMapping,
)
from row_graph.mapping.registry import PlanRegistry

__all__ = [
    "Materializer",
    "MappingPlanBuilder",
    "plan_for",
    "PlanRegistry",
    "MappingPlan",
    "FieldMapping",
    "Discriminator",
    "StatementMapping",
    "RowWindow",
    "DeferredValue",
    "LazyLoadable",
    "resolve_deferred",
]
