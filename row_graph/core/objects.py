"""Object construction and type metadata.

Supports dataclasses, Pydantic models, plain classes, and dict targets.
Class inspection happens once per type (``metadata_for`` is cached); the
row loop only reads the cached results.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import functools
import inspect
import types
import typing
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from row_graph.core.converters import unwrap_optional
from row_graph.core.exceptions import ObjectCreationError

_AUTOMAP_MARKER = "__row_graph_automap__"

# Abstract collection types -> the concrete type instantiated for them
_CONCRETE_TYPES: dict[Any, type] = {
    collections.abc.Iterable: list,
    collections.abc.Collection: list,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Set: set,
    collections.abc.MutableSet: set,
    collections.abc.Mapping: dict,
    collections.abc.MutableMapping: dict,
}

_NON_NULLABLE = (int, float, bool)


def automap_constructor(func: Callable[..., Any]) -> Callable[..., Any]:
    """Mark a classmethod as the canonical constructor for automatic mapping.

    Apply below ``@classmethod``::

        @classmethod
        @automap_constructor
        def from_row(cls, id: int, name: str) -> User: ...
    """
    setattr(func, _AUTOMAP_MARKER, True)
    return func


def _is_pydantic_model(cls: Any) -> bool:
    """Check if a class is a Pydantic BaseModel."""
    return isinstance(cls, type) and issubclass(cls, BaseModel)


def _type_hints(obj: Any) -> dict[str, Any]:
    """Evaluated annotations of a class or function; empty if a name is unresolvable."""
    try:
        return typing.get_type_hints(obj)
    except (NameError, TypeError):
        return {}


def _resolve_annotation(annotation: Any, hints: dict[str, Any], name: str) -> Any:
    """The evaluated hint for ``name``; unevaluated or missing annotations become object."""
    resolved = hints.get(name, annotation)
    if resolved is inspect.Parameter.empty or resolved is None or isinstance(resolved, str):
        return object
    return resolved


def _is_nullable(annotation: Any) -> bool:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        return type(None) in typing.get_args(annotation)
    return annotation not in _NON_NULLABLE


@dataclass(frozen=True)
class PropertyInfo:
    """A settable property discovered on a target type."""

    name: str
    type: Any
    nullable: bool = True


@dataclass(frozen=True)
class ConstructorInfo:
    """A candidate constructor: ``__init__`` (via the class) or a marked classmethod."""

    factory: Callable[..., Any]
    parameters: tuple[tuple[str, Any], ...]
    canonical: bool = False


class TypeMetadata:
    """Cached structural information about a target type."""

    def __init__(self, cls: Any) -> None:
        self.cls = cls
        self.properties: dict[str, PropertyInfo] = _discover_properties(cls)
        self._by_upper = {name.upper(): name for name in self.properties}
        self._by_flat = {name.replace("_", "").upper(): name for name in self.properties}
        self.constructors: tuple[ConstructorInfo, ...] = _discover_constructors(cls)

    def find_property(self, name: str, camel_case: bool = False) -> str | None:
        """Find a property by case-insensitive name.

        With ``camel_case`` separators are ignored on both sides, so
        ``FIRST_NAME``, ``firstName`` and ``first_name`` all match.
        """
        if camel_case:
            return self._by_flat.get(name.replace("_", "").upper())
        return self._by_upper.get(name.upper())

    def has_setter(self, name: str) -> bool:
        return name in self.properties

    def setter_type(self, name: str) -> Any:
        info = self.properties.get(name)
        return info.type if info is not None else object

    def is_nullable(self, name: str) -> bool:
        info = self.properties.get(name)
        return info.nullable if info is not None else True


def _discover_properties(cls: Any) -> dict[str, PropertyInfo]:
    if not isinstance(cls, type) or issubclass(cls, collections.abc.Mapping):
        return {}

    # Pydantic models resolve their own annotations
    if _is_pydantic_model(cls):
        resolved_types = {
            name: model_field.annotation
            for name, model_field in cls.model_fields.items()  # type: ignore[attr-defined]
        }
    else:
        hints = _type_hints(cls)
        raw: dict[str, Any] = {}
        # Dataclass
        if dataclasses.is_dataclass(cls):
            for dc_field in dataclasses.fields(cls):
                raw[dc_field.name] = dc_field.type
        # Plain class - class annotations, then __init__ parameters
        else:
            for klass in reversed(cls.__mro__):
                raw.update(vars(klass).get("__annotations__", {}))
            try:
                signature = inspect.signature(cls.__init__)  # type: ignore[misc]
            except (ValueError, TypeError):
                signature = None
            if signature is not None:
                init_hints = _type_hints(cls.__init__)  # type: ignore[misc]
                for name, param in signature.parameters.items():
                    if name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                        continue
                    if name not in raw:
                        raw[name] = param.annotation
                        hints.setdefault(name, init_hints.get(name, param.annotation))
        resolved_types = {
            name: _resolve_annotation(annotation, hints, name) for name, annotation in raw.items()
        }

    for klass in reversed(cls.__mro__):
        for name, member in vars(klass).items():
            if isinstance(member, property) and member.fset is not None:
                returns = _type_hints(member.fget).get("return") if member.fget else None
                resolved_types[name] = returns if returns is not None else object

    properties: dict[str, PropertyInfo] = {}
    for name, resolved in resolved_types.items():
        if name.startswith("_"):
            continue
        if resolved is None:
            resolved = object
        if typing.get_origin(resolved) is typing.ClassVar:
            continue
        properties[name] = PropertyInfo(
            name=name,
            type=unwrap_optional(resolved),
            nullable=_is_nullable(resolved),
        )
    return properties


def _parameters_of(func: Callable[..., Any], skip_first: bool) -> tuple:
    try:
        signature = inspect.signature(func)
    except (ValueError, TypeError):
        return ()
    hints = _type_hints(func)
    params = []
    for index, (name, param) in enumerate(signature.parameters.items()):
        if skip_first and index == 0:
            continue
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        params.append((name, unwrap_optional(_resolve_annotation(param.annotation, hints, name))))
    return tuple(params)


def _discover_constructors(cls: Any) -> tuple[ConstructorInfo, ...]:
    if not isinstance(cls, type):
        return ()
    candidates = []
    if _is_pydantic_model(cls):
        init_params = tuple(
            (name, unwrap_optional(f.annotation))
            for name, f in cls.model_fields.items()  # type: ignore[attr-defined]
        )
    else:
        init_params = _parameters_of(cls.__init__, skip_first=True)  # type: ignore[misc]
    candidates.append(ConstructorInfo(factory=cls, parameters=init_params))
    for name, member in vars(cls).items():
        if isinstance(member, classmethod) and getattr(member.__func__, _AUTOMAP_MARKER, False):
            candidates.append(
                ConstructorInfo(
                    factory=getattr(cls, name),
                    parameters=_parameters_of(member.__func__, skip_first=True),
                    canonical=True,
                )
            )
    return tuple(candidates)


@functools.lru_cache(maxsize=None)
def metadata_for(cls: Any) -> TypeMetadata:
    """Return the cached TypeMetadata for a class."""
    return TypeMetadata(cls)


class ObjectFactory:
    """Creates target objects and answers structural questions about types."""

    def resolve_type(self, cls: Any) -> Any:
        """Map abstract and generic collection types to a concrete class."""
        cls = unwrap_optional(cls)
        origin = typing.get_origin(cls) or cls
        return _CONCRETE_TYPES.get(origin, origin)

    def is_collection(self, cls: Any) -> bool:
        """Check whether values of this type collect linked children."""
        concrete = self.resolve_type(cls)
        return isinstance(concrete, type) and issubclass(
            concrete, (collections.abc.MutableSequence, collections.abc.MutableSet)
        )

    def is_keyed_container(self, cls: Any) -> bool:
        concrete = self.resolve_type(cls)
        return isinstance(concrete, type) and issubclass(concrete, collections.abc.Mapping)

    def can_create_default(self, cls: Any) -> bool:
        """Check whether the type can be created with no arguments."""
        concrete = self.resolve_type(cls)
        if not isinstance(concrete, type) or inspect.isabstract(concrete):
            return False
        if self.is_collection(concrete) or self.is_keyed_container(concrete):
            return True
        constructors = metadata_for(concrete).constructors
        if not constructors:
            return False
        if _is_pydantic_model(concrete):
            return all(
                not f.is_required()
                for f in concrete.model_fields.values()  # type: ignore[attr-defined]
            )
        try:
            signature = inspect.signature(concrete)
        except (ValueError, TypeError):
            return False
        return all(
            param.default is not param.empty
            or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD)
            for param in signature.parameters.values()
        )

    def new_instance(
        self,
        cls: Any,
        arg_values: Sequence[Any] = (),
        arg_names: Sequence[str | None] | None = None,
        factory: Callable[..., Any] | None = None,
    ) -> Any:
        """Create an instance, by keyword when every argument has a name."""
        target = factory or self.resolve_type(cls)
        try:
            if arg_names is not None and all(name is not None for name in arg_names):
                return target(**dict(zip(arg_names, arg_values, strict=True)))
            return target(*arg_values)
        except Exception as e:
            raise ObjectCreationError(cls, str(e)) from e


def get_value(target: Any, name: str) -> Any:
    """Read a property from a dict or an object."""
    if isinstance(target, collections.abc.Mapping):
        return target.get(name)
    return getattr(target, name, None)


def set_value(target: Any, name: str, value: Any) -> None:
    """Assign a property on a dict or an object (frozen instances included)."""
    if isinstance(target, collections.abc.MutableMapping):
        target[name] = value
    else:
        object.__setattr__(target, name, value)


def set_validated(target: Any, name: str, value: Any) -> None:
    """Assign a column value, validating pydantic model fields on assignment.

    Raises:
        pydantic.ValidationError: If a model field rejects the value.
    """
    cls = type(target)
    # Frozen models take the value already converted on read
    if (
        isinstance(target, BaseModel)
        and name in cls.model_fields
        and not cls.model_config.get("frozen")
    ):
        cls.__pydantic_validator__.validate_assignment(target, name, value)
    else:
        set_value(target, name, value)


def add_to_collection(collection: Any, value: Any) -> None:
    if isinstance(collection, collections.abc.MutableSet):
        collection.add(value)
    else:
        collection.append(value)


def property_type(target: Any, name: str | None) -> Any:
    """Declared type of a property on ``target``; ``object`` when unknown."""
    if name is None or isinstance(target, collections.abc.Mapping):
        return object
    return metadata_for(type(target)).setter_type(name)


def is_nullable_property(target: Any, name: str) -> bool:
    if isinstance(target, collections.abc.Mapping):
        return True
    return metadata_for(type(target)).is_nullable(name)
