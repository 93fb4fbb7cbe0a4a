"""Unit tests for Engine."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import pytest

from row_graph.adapters.memory import MemoryCursor
from row_graph.core.config import MappingSettings
from row_graph.core.engine import Engine, extract_object_from_list
from row_graph.core.exceptions import (
    ExecutionError,
    MultipleRowsError,
    NestedQueryError,
    StatementNotFoundError,
)
from row_graph.mapping.builder import plan_for
from row_graph.mapping.plan import StatementMapping


@dataclass
class Author:
    id: int | None = None
    name: str | None = None


@dataclass
class Blog:
    id: int | None = None
    title: str | None = None
    author: Author | None = None


@dataclass
class Employee:
    id: int | None = None
    name: str | None = None
    manager: Employee | None = None


AUTHORS = {7: "Ann", 8: "Bob"}
BLOGS = [
    {"id": 1, "title": "First", "author_id": 7},
    {"id": 2, "title": "Second", "author_id": 7},
    {"id": 3, "title": "Third", "author_id": 8},
]


class Runner:
    """Statement runner over in-memory tables that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.cursors: list[MemoryCursor] = []
        self.authors = dict(AUTHORS)

    def __call__(self, statement_id: str, params: Any) -> Sequence[MemoryCursor]:
        self.calls.append((statement_id, params))
        if statement_id == "blog.all":
            cursors = [MemoryCursor(BLOGS)]
        elif statement_id == "blog.by_id":
            cursors = [MemoryCursor([b for b in BLOGS if b["id"] == params])]
        elif statement_id == "author.by_id":
            cursors = [MemoryCursor([{"id": params, "name": self.authors[params]}])]
        elif statement_id == "blog.twice":
            cursors = [MemoryCursor(BLOGS), MemoryCursor(BLOGS)]
        else:
            raise OSError(f"table missing for {statement_id}")
        self.cursors.extend(cursors)
        return cursors


def _plans() -> list:
    return [
        plan_for(Blog)
        .id("id")
        .result("title")
        .association("author", nested_query="author.by_id", column="author_id")
        .build(),
        plan_for(Author).id("id").result("name").build(),
    ]


def _statements() -> list[StatementMapping]:
    return [
        StatementMapping("blog.all", ("Blog",)),
        StatementMapping("blog.by_id", ("Blog",)),
        StatementMapping("blog.twice", ("Blog", "Blog")),
        StatementMapping("author.by_id", ("Author",)),
        StatementMapping("broken", ("Blog",)),
    ]


@pytest.fixture
def runner() -> Runner:
    return Runner()


@pytest.fixture
def engine(runner: Runner) -> Engine:
    return Engine.from_plans(runner, _plans(), _statements())


class TestEngine:
    def test_fetch_all_with_nested_queries(self, engine: Engine) -> None:
        blogs = engine.fetch_all("blog.all")

        assert [b.id for b in blogs] == [1, 2, 3]
        assert blogs[0].author == Author(7, "Ann")
        assert blogs[2].author == Author(8, "Bob")

    def test_nested_query_runs_once_per_parameter(self, engine: Engine, runner: Runner) -> None:
        blogs = engine.fetch_all("blog.all")

        author_calls = [call for call in runner.calls if call[0] == "author.by_id"]
        assert author_calls == [("author.by_id", 7), ("author.by_id", 8)]
        # Second blog by the same author reuses the first result
        assert isinstance(blogs[1].author, Author)
        assert blogs[1].author is blogs[0].author
        assert len(runner.calls) == 3

    def test_nested_cache_scoped_to_one_call(self, engine: Engine, runner: Runner) -> None:
        engine.fetch_all("blog.all")
        runner.authors[7] = "Annie"

        blogs = engine.fetch_all("blog.all")

        assert blogs[0].author == Author(7, "Annie")
        assert blogs[1].author == Author(7, "Annie")
        author_calls = [call for call in runner.calls if call[0] == "author.by_id"]
        assert len(author_calls) == 4
        assert not engine.is_cached("author.by_id", 7)

    def test_stream_consumer_sees_loaded_values(self, engine: Engine) -> None:
        authors: list[Any] = []

        engine.stream("blog.all", None, lambda blog: authors.append(blog.author))

        assert authors == [Author(7, "Ann"), Author(7, "Ann"), Author(8, "Bob")]

    def test_iterate_yields_loaded_values(self, engine: Engine) -> None:
        authors = [blog.author for blog in engine.iterate("blog.all")]

        assert authors == [Author(7, "Ann"), Author(7, "Ann"), Author(8, "Bob")]

    def test_fetch_one(self, engine: Engine) -> None:
        blog = engine.fetch_one("blog.by_id", 3)

        assert blog is not None
        assert blog.title == "Third"

    def test_fetch_one_returns_none_on_zero_rows(self, engine: Engine) -> None:
        assert engine.fetch_one("blog.by_id", 99) is None

    def test_fetch_one_raises_multiple_rows(self, engine: Engine) -> None:
        with pytest.raises(MultipleRowsError):
            engine.fetch_one("blog.all")

    def test_stream(self, engine: Engine) -> None:
        titles: list[str] = []

        engine.stream("blog.all", None, lambda blog: titles.append(blog.title))

        assert titles == ["First", "Second", "Third"]

    def test_iterate(self, engine: Engine, runner: Runner) -> None:
        ids = [blog.id for blog in engine.iterate("blog.all")]

        assert ids == [1, 2, 3]
        assert runner.cursors[0].closed

    def test_iterate_rejects_multiple_result_sets(self, engine: Engine, runner: Runner) -> None:
        with pytest.raises(ExecutionError):
            engine.iterate("blog.twice")
        assert all(c.closed for c in runner.cursors)

    def test_statement_not_found(self, engine: Engine) -> None:
        with pytest.raises(StatementNotFoundError):
            engine.fetch_all("blog.missing")

    def test_runner_failure_wrapped(self, engine: Engine) -> None:
        with pytest.raises(ExecutionError) as exc_info:
            engine.fetch_all("broken")
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_from_plans_settings(self, runner: Runner) -> None:
        engine = Engine.from_plans(
            runner, _plans(), _statements(), settings=MappingSettings(call_setters_on_nulls=True)
        )

        assert engine.configuration.settings.call_setters_on_nulls is True
        assert len(engine.configuration.plans) == 2


class TestNestedQueryCache:
    def test_top_level_run_leaves_cache_empty(self, engine: Engine) -> None:
        assert engine.run("author.by_id", 7, Author) == Author(7, "Ann")

        assert not engine.is_cached("author.by_id", 7)

    def test_is_cached_during_call(self, runner: Runner) -> None:
        seen: list[bool] = []
        holder: dict[str, Engine] = {}

        def observing(statement_id: str, params: Any) -> Sequence[MemoryCursor]:
            if statement_id == "blog.by_id":
                seen.append(holder["engine"].is_cached("author.by_id", 7))
            return runner(statement_id, params)

        engine = Engine.from_plans(observing, _plans(), _statements())
        holder["engine"] = engine
        engine.stream("blog.all", None, lambda blog: engine.fetch_one("blog.by_id", 2))

        assert seen == [True, True, True]

    def test_clear_cache(self, engine: Engine, runner: Runner) -> None:
        engine.run("author.by_id", 7)
        engine.clear_cache()
        engine.run("author.by_id", 7)

        assert runner.calls == [("author.by_id", 7), ("author.by_id", 7)]

    def test_self_referencing_query_terminates(self) -> None:
        staff = {1: {"id": 1, "name": "Root", "manager_id": 1}}

        def run_staff(statement_id: str, params: Any) -> list[MemoryCursor]:
            return [MemoryCursor([staff[params]])]

        plans = [
            plan_for(Employee)
            .id("id")
            .result("name")
            .association("manager", nested_query="employee.by_id", column="manager_id")
            .build()
        ]
        engine = Engine.from_plans(run_staff, plans, [StatementMapping("employee.by_id", ("Employee",))])

        root = engine.fetch_one("employee.by_id", 1)

        assert root.manager.name == "Root"
        # The running query's own reference is loaded after it completes
        assert root.manager.manager is root.manager

    def test_reentry_while_executing_raises(self, runner: Runner) -> None:
        holder: dict[str, Engine] = {}

        def reentrant(statement_id: str, params: Any) -> Sequence[MemoryCursor]:
            holder["engine"].run("author.by_id", params)
            return runner(statement_id, params)

        engine = Engine.from_plans(reentrant, _plans(), _statements())
        holder["engine"] = engine

        with pytest.raises(NestedQueryError):
            engine.run("author.by_id", 7)
        assert not engine.is_cached("author.by_id", 7)


class TestExtractObjectFromList:
    def test_list_target_receives_list(self) -> None:
        results = [1, 2]

        assert extract_object_from_list(results, list) is results
        assert extract_object_from_list(results, list[int]) is results

    def test_object_target_receives_list(self) -> None:
        assert extract_object_from_list([1, 2], object) == [1, 2]

    def test_other_collections_copied(self) -> None:
        assert extract_object_from_list([1, 2, 2], set) == {1, 2}
        assert extract_object_from_list([1, 2], tuple) == (1, 2)

    def test_single_target_receives_element(self) -> None:
        assert extract_object_from_list([Author(1)], Author) == Author(1)
        assert extract_object_from_list([], Author) is None

    def test_single_target_with_many_rows_raises(self) -> None:
        with pytest.raises(MultipleRowsError) as exc_info:
            extract_object_from_list([1, 2], None, query_id="author.by_id")
        assert exc_info.value.statement_id == "author.by_id"
