"""Materialization settings and the shared configuration bundle.

MappingSettings is a Pydantic model for type-safe settings. Configuration
bundles the settings with the plan registry, converter registry and
object factory; it is created once and passed by reference into every
materialization call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from row_graph.core.converters import ConverterRegistry
from row_graph.core.enums import AutoMappingBehavior, UnknownColumnBehavior
from row_graph.core.objects import ObjectFactory

if TYPE_CHECKING:
    from row_graph.mapping.registry import PlanRegistry


class MappingSettings(BaseModel):
    """Settings that shape how rows become objects."""

    model_config = ConfigDict(frozen=True)

    auto_mapping_behavior: AutoMappingBehavior = AutoMappingBehavior.PARTIAL
    unknown_column_behavior: UnknownColumnBehavior = UnknownColumnBehavior.IGNORE
    map_underscore_to_camel_case: bool = False
    call_setters_on_nulls: bool = False
    return_instance_for_empty_row: bool = False
    safe_row_window_enabled: bool = True
    safe_result_handler_enabled: bool = True


@dataclass(frozen=True)
class Configuration:
    """Immutable configuration shared by all materialization calls."""

    plans: PlanRegistry
    settings: MappingSettings = field(default_factory=MappingSettings)
    converters: ConverterRegistry = field(default_factory=ConverterRegistry)
    objects: ObjectFactory = field(default_factory=ObjectFactory)
