"""RowGraph - materialize object graphs from tabular query results."""

from __future__ import annotations

from row_graph.adapters.dbapi import DBAPICursor
from row_graph.adapters.memory import MemoryCursor
from row_graph.adapters.protocol import NestedQueryExecutor, RowCursor, StatementRunner
from row_graph.core.config import Configuration, MappingSettings
from row_graph.core.converters import ConverterRegistry
from row_graph.core.engine import Engine, extract_object_from_list
from row_graph.core.enums import AutoMappingBehavior, UnknownColumnBehavior
from row_graph.core.exceptions import (
    ConfigurationError,
    DuplicatePlanError,
    ExecutionError,
    MappingError,
    MultipleRowsError,
    NestedQueryError,
    ObjectCreationError,
    PlanCompilationError,
    PlanNotFoundError,
    RegistryError,
    ResultMapError,
    RowGraphError,
    StatementNotFoundError,
    UnknownColumnError,
    UnsafeResultHandlerError,
    UnsafeRowWindowError,
)
from row_graph.core.objects import ObjectFactory, automap_constructor
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
    # Engine
    "Engine",
    "extract_object_from_list",
    "Materializer",
    # Configuration
    "Configuration",
    "MappingSettings",
    "ConverterRegistry",
    "ObjectFactory",
    "automap_constructor",
    # Plans
    "plan_for",
    "MappingPlanBuilder",
    "PlanRegistry",
    "MappingPlan",
    "FieldMapping",
    "Discriminator",
    "StatementMapping",
    "RowWindow",
    # Cursors
    "RowCursor",
    "StatementRunner",
    "NestedQueryExecutor",
    "MemoryCursor",
    "DBAPICursor",
    # Lazy loading
    "DeferredValue",
    "LazyLoadable",
    "resolve_deferred",
    # Enums
    "AutoMappingBehavior",
    "UnknownColumnBehavior",
    # Exceptions
    "RowGraphError",
    "RegistryError",
    "PlanNotFoundError",
    "DuplicatePlanError",
    "StatementNotFoundError",
    "MappingError",
    "PlanCompilationError",
    "ConfigurationError",
    "UnknownColumnError",
    "ResultMapError",
    "ObjectCreationError",
    "ExecutionError",
    "MultipleRowsError",
    "UnsafeRowWindowError",
    "UnsafeResultHandlerError",
    "NestedQueryError",
]
