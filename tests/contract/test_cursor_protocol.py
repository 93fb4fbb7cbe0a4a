"""Contract tests for collaborator protocol compliance."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from typing import Any

import pytest

from row_graph.adapters.dbapi import DBAPICursor
from row_graph.adapters.memory import MemoryCursor
from row_graph.adapters.protocol import NestedQueryExecutor, RowCursor, StatementRunner
from row_graph.core.engine import Engine


@pytest.fixture
def connection() -> Iterator[sqlite3.Connection]:
    conn = sqlite3.connect(":memory:")
    conn.execute("CREATE TABLE items (id INTEGER PRIMARY KEY, label TEXT)")
    conn.executemany("INSERT INTO items (id, label) VALUES (?, ?)", [(1, "a"), (2, "b")])
    yield conn
    conn.close()


class TestMemoryCursorProtocol:
    def test_implements_row_cursor(self) -> None:
        assert isinstance(MemoryCursor([]), RowCursor)

    def test_mapping_rows(self) -> None:
        cursor = MemoryCursor([{"id": 1, "label": "a"}])

        assert cursor.columns == ["id", "label"]
        assert cursor.next_row() == {"id": 1, "label": "a"}
        assert cursor.next_row() is None

    def test_sequence_rows_need_columns(self) -> None:
        cursor = MemoryCursor([(1, "a")], columns=["id", "label"])

        assert cursor.next_row() == {"id": 1, "label": "a"}
        with pytest.raises(ValueError):
            MemoryCursor([(1, "a")])

    def test_column_types_case_insensitive(self) -> None:
        cursor = MemoryCursor([], columns=["id"], column_types={"ID": "INTEGER"})

        assert cursor.column_type("id") == "INTEGER"
        assert cursor.column_type("other") is None

    def test_lifecycle(self) -> None:
        cursor = MemoryCursor([{"id": 1}])

        cursor.close()

        assert cursor.closed
        with pytest.raises(RuntimeError):
            cursor.next_row()


class TestDBAPICursorProtocol:
    def test_implements_row_cursor(self, connection: sqlite3.Connection) -> None:
        cursor = DBAPICursor(connection.execute("SELECT id, label FROM items"))

        assert isinstance(cursor, RowCursor)

    def test_reads_rows(self, connection: sqlite3.Connection) -> None:
        cursor = DBAPICursor(connection.execute("SELECT id, label FROM items ORDER BY id"))

        assert cursor.columns == ["id", "label"]
        assert cursor.next_row() == {"id": 1, "label": "a"}
        assert cursor.next_row() == {"id": 2, "label": "b"}
        assert cursor.next_row() is None

    def test_row_factory_rows(self, connection: sqlite3.Connection) -> None:
        connection.row_factory = sqlite3.Row
        cursor = DBAPICursor(connection.execute("SELECT id, label FROM items WHERE id = 2"))

        assert cursor.next_row() == {"id": 2, "label": "b"}

    def test_lifecycle(self, connection: sqlite3.Connection) -> None:
        cursor = DBAPICursor(connection.execute("SELECT id FROM items"))

        cursor.close()

        assert cursor.closed


class TestEngineProtocols:
    def test_engine_is_nested_query_executor(self) -> None:
        engine = Engine.from_plans(lambda statement_id, params: [], [])

        assert isinstance(engine, NestedQueryExecutor)

    def test_function_is_statement_runner(self) -> None:
        def runner(statement_id: str, params: Any) -> list[MemoryCursor]:
            return []

        assert isinstance(runner, StatementRunner)
