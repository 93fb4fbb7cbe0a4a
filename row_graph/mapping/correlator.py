"""Multi-result correlation.

A field mapping that names a later result set cannot be filled while the
current rows are read. Its holder is parked as a pending relation under a
correlation key built from the holder row's columns; rows of the named
result set compute the same key from their foreign columns and are linked
into every holder parked under it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from row_graph.core.exceptions import ConfigurationError
from row_graph.mapping.identity import RowIdentity
from row_graph.mapping.plan import FieldMapping
from row_graph.mapping.result_set import ResultSetWrapper


@dataclass
class PendingRelation:
    holder: Any
    mapping: FieldMapping


def correlation_key(
    rsw: ResultSetWrapper,
    mapping: FieldMapping,
    names: str | None,
    columns: str | None,
) -> RowIdentity:
    """Key built from ``columns`` of the current row, labelled by ``names``.

    Values are compared as strings so drivers that report the same key
    with different Python types still correlate; null columns are skipped.

    Raises:
        ConfigurationError: If a declared column is missing from the result set.
    """
    key = RowIdentity()
    key.update(id(mapping))
    if names is not None and columns is not None:
        for name, column in zip(names.split(","), columns.split(","), strict=True):
            column = column.strip()
            if not rsw.has_column(column):
                raise ConfigurationError(
                    f"Column '{column}' of property '{mapping.property}' "
                    f"(result set '{mapping.result_set}') not found in columns {rsw.columns}"
                )
            value = rsw.raw(column)
            if value is not None:
                key.update(name.strip().upper())
                key.update(str(value))
    return key


class MultiResultCorrelator:
    """Pending relations and result-set bindings for one materialization call."""

    def __init__(self) -> None:
        self._pending: dict[RowIdentity, list[PendingRelation]] = {}
        self._next_result_maps: dict[str, FieldMapping] = {}

    def add_pending(self, rsw: ResultSetWrapper, holder: Any, mapping: FieldMapping) -> None:
        """Park ``holder`` until the result set named by ``mapping`` is read.

        Raises:
            ConfigurationError: If another mapping is bound to the same result set.
        """
        key = correlation_key(rsw, mapping, mapping.column, mapping.column)
        self._pending.setdefault(key, []).append(PendingRelation(holder, mapping))
        result_set = str(mapping.result_set)
        previous = self._next_result_maps.get(result_set)
        if previous is None:
            self._next_result_maps[result_set] = mapping
        elif previous is not mapping:
            raise ConfigurationError(
                f"Two different properties are mapped to the same result set "
                f"'{mapping.result_set}': '{previous.property}' and '{mapping.property}'"
            )

    def parent_mapping(self, result_set: str) -> FieldMapping | None:
        return self._next_result_maps.get(result_set)

    def link_to_parents(
        self,
        rsw: ResultSetWrapper,
        parent_mapping: FieldMapping,
        value: Any,
        link: Callable[[Any, FieldMapping, Any], None],
    ) -> int:
        """Link a row of a later result set into every matching holder.

        Returns the number of holders linked.
        """
        if value is None:
            return 0
        key = correlation_key(rsw, parent_mapping, parent_mapping.column, parent_mapping.foreign_column)
        relations = self._pending.get(key, [])
        for relation in relations:
            link(relation.holder, relation.mapping, value)
        return len(relations)
