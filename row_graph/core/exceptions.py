"""RowGraph exception hierarchy.

All exceptions are RowGraph-specific. Converter, constructor and cursor
failures are wrapped with the mapping context they happened in and
chained with ``raise ... from``.
"""

from __future__ import annotations

from typing import Any


class RowGraphError(Exception):
    """Base exception for all RowGraph errors."""


# --- Registry ---


class RegistryError(RowGraphError):
    """Base for plan registry errors."""


class PlanNotFoundError(RegistryError):
    """Raised when a mapping plan id cannot be found in the registry."""

    def __init__(self, plan_id: str) -> None:
        self.plan_id = plan_id
        super().__init__(f"Mapping plan not found: '{plan_id}'")


class DuplicatePlanError(RegistryError):
    """Raised when two plans (or two statements) share the same id."""

    def __init__(self, plan_id: str) -> None:
        self.plan_id = plan_id
        super().__init__(f"Duplicate mapping plan id '{plan_id}'")


class StatementNotFoundError(RegistryError):
    """Raised when a statement id cannot be found in the registry."""

    def __init__(self, statement_id: str) -> None:
        self.statement_id = statement_id
        super().__init__(f"Statement not found: '{statement_id}'")


# --- Mapping ---


class MappingError(RowGraphError):
    """Base for mapping errors."""


class PlanCompilationError(MappingError):
    """Raised when a MappingPlan fails validation during build()."""


class ConfigurationError(MappingError):
    """Raised at materialization time for fatal configuration problems."""


class UnknownColumnError(MappingError):
    """Raised by the FAIL unknown-column policy during automatic mapping."""

    def __init__(self, plan_id: str, column: str, property_name: str | None) -> None:
        self.plan_id = plan_id
        self.column = column
        self.property_name = property_name
        target = f"property '{property_name}'" if property_name else "no settable property"
        super().__init__(
            f"Unknown column '{column}' while auto-mapping plan '{plan_id}': {target}"
        )


class ResultMapError(MappingError):
    """Raised when a row value cannot be read or converted."""

    def __init__(
        self,
        plan_id: str,
        property_name: str | None,
        column: str | None,
        row_number: int,
        detail: str,
    ) -> None:
        self.plan_id = plan_id
        self.property_name = property_name
        self.column = column
        self.row_number = row_number
        super().__init__(
            f"Could not map column '{column}' to property '{property_name}' "
            f"of plan '{plan_id}' at row {row_number}: {detail}"
        )


class ObjectCreationError(MappingError):
    """Raised when a target type cannot be instantiated with the given arguments."""

    def __init__(self, target: Any, detail: str) -> None:
        self.target = target
        name = getattr(target, "__name__", repr(target))
        super().__init__(f"Error creating instance of {name}: {detail}")


# --- Execution ---


class ExecutionError(RowGraphError):
    """Base for materialization call errors."""


class MultipleRowsError(ExecutionError):
    """Raised when the single-object contract receives more than one result."""

    def __init__(self, statement_id: str, row_count: int) -> None:
        self.statement_id = statement_id
        self.row_count = row_count
        super().__init__(
            f"fetch_one for '{statement_id}' returned {row_count} results (expected 0 or 1)"
        )


class UnsafeRowWindowError(ExecutionError):
    """Raised when a bounded row window is combined with nested plans or ordered mode."""


class UnsafeResultHandlerError(ExecutionError):
    """Raised when a custom consumer would observe partially built nested objects."""


class NestedQueryError(ExecutionError):
    """Raised when a nested query fails, eagerly or on first deferred read."""

    def __init__(self, query_id: str, detail: str) -> None:
        self.query_id = query_id
        super().__init__(f"Nested query '{query_id}' failed: {detail}")
