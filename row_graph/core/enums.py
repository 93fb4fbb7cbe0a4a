"""Mapping enumerations."""

from __future__ import annotations

from enum import Enum


class AutoMappingBehavior(Enum):
    """Which plans get columns matched to properties automatically."""

    NONE = "none"
    PARTIAL = "partial"  # plans without nested plans
    FULL = "full"


class UnknownColumnBehavior(Enum):
    """What automatic mapping does with a column it cannot place."""

    IGNORE = "ignore"
    WARN = "warn"
    FAIL = "fail"


class FieldFlag(Enum):
    """Field mapping flags."""

    IDENTITY = "identity"
    CONSTRUCTOR = "constructor"


class ValueSource(Enum):
    """Where a field mapping's value comes from, resolved at plan build time."""

    COLUMN = "column"
    COMPOSITE = "composite"
    NESTED_PLAN = "nested_plan"
    NESTED_QUERY = "nested_query"
    RESULT_SET = "result_set"
