"""Converter registry.

Resolves the function that turns a raw column value into a value of the
requested Python type. Lookups are keyed by (target type, column type);
a registration for a specific column type wins over the generic one.

Default converters validate with a cached pydantic ``TypeAdapter`` for the
target type, in lax mode: ``"5"`` becomes ``5``, ``1`` becomes ``True``
and ISO strings become dates. Numbers are accepted for ``str`` targets.
"""

from __future__ import annotations

import datetime
import functools
import types
import typing
import uuid
from collections.abc import Callable
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import ConfigDict, TypeAdapter

Converter = Callable[[Any], Any]

# Scalar types with a default converter; Enum subclasses are added on demand
SCALAR_TYPES: tuple[type, ...] = (
    int,
    float,
    str,
    bool,
    Decimal,
    bytes,
    datetime.datetime,
    datetime.date,
    datetime.time,
    uuid.UUID,
)

_STR_CONFIG = ConfigDict(coerce_numbers_to_str=True)


def unwrap_optional(target_type: Any) -> Any:
    """Return X for Optional[X] / X | None, otherwise the type unchanged."""
    origin = typing.get_origin(target_type)
    if origin is typing.Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(target_type) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
        return object
    if target_type is None or target_type is Any:
        return object
    return target_type


def _passthrough(value: Any) -> Any:
    return value


@functools.lru_cache(maxsize=None)
def adapter_converter(target_type: Any) -> Converter:
    """``validate_python`` of a TypeAdapter built once per target type."""
    if target_type is str:
        return TypeAdapter(str, config=_STR_CONFIG).validate_python
    return TypeAdapter(target_type).validate_python


class ConverterRegistry:
    """Maps (target type, column type) pairs to converter functions.

    The registry is read-only once materialization starts: register
    custom converters while building the configuration, then share it.

    Args:
        include_defaults: Register converters for the builtin scalar types.
    """

    def __init__(self, include_defaults: bool = True) -> None:
        self._converters: dict[tuple[Any, str | None], Converter] = {}
        self._include_defaults = include_defaults
        if include_defaults:
            self.register(object, _passthrough)
            for target_type in SCALAR_TYPES:
                self.register(target_type, adapter_converter(target_type))

    def register(
        self,
        target_type: Any,
        converter: Converter,
        column_type: str | None = None,
    ) -> None:
        """Register a converter, optionally only for one declared column type."""
        key_column = column_type.upper() if column_type else None
        self._converters[(target_type, key_column)] = converter

    def converter(self, target_type: Any, column_type: str | None = None) -> Converter | None:
        """Resolve the converter for a target type, or None if there is none."""
        target = unwrap_optional(target_type)
        if column_type:
            found = self._converters.get((target, column_type.upper()))
            if found is not None:
                return found
        found = self._converters.get((target, None))
        if found is not None:
            return found
        if self._include_defaults and isinstance(target, type) and issubclass(target, Enum):
            return adapter_converter(target)
        return None

    def has_converter(self, target_type: Any, column_type: str | None = None) -> bool:
        """Check whether a converter exists for the target type."""
        return self.converter(target_type, column_type) is not None

    def __len__(self) -> int:
        return len(self._converters)
