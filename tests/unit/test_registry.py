"""Unit tests for PlanRegistry."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from row_graph.core.exceptions import (
    DuplicatePlanError,
    PlanCompilationError,
    PlanNotFoundError,
    StatementNotFoundError,
)
from row_graph.mapping.builder import plan_for
from row_graph.mapping.plan import StatementMapping
from row_graph.mapping.registry import PlanRegistry


@dataclass
class Post:
    id: int | None = None


@dataclass
class Blog:
    id: int | None = None
    posts: list[Post] = field(default_factory=list)


class TestPlanRegistry:
    def test_get_returns_plan(self) -> None:
        plan = plan_for(Post).id("id").build()
        registry = PlanRegistry([plan])
        assert registry.get("Post") is plan

    def test_has(self) -> None:
        registry = PlanRegistry([plan_for(Post).build()])
        assert registry.has("Post") is True
        assert registry.has("Blog") is False

    def test_plan_ids_sorted(self) -> None:
        registry = PlanRegistry([plan_for(Post, "b").build(), plan_for(Post, "a").build()])
        assert registry.plan_ids == ["a", "b"]

    def test_len(self) -> None:
        registry = PlanRegistry([plan_for(Post, "a").build(), plan_for(Post, "b").build()])
        assert len(registry) == 2

    def test_plan_not_found_error(self) -> None:
        registry = PlanRegistry([])
        with pytest.raises(PlanNotFoundError) as exc_info:
            registry.get("Missing")
        assert exc_info.value.plan_id == "Missing"

    def test_duplicate_plan_raises(self) -> None:
        with pytest.raises(DuplicatePlanError):
            PlanRegistry([plan_for(Post).build(), plan_for(Post).build()])

    def test_unknown_nested_plan_raises(self) -> None:
        with pytest.raises(PlanCompilationError, match="unknown nested plan"):
            PlanRegistry([plan_for(Blog).collection("posts", "Post").build()])

    def test_statement_lookup(self) -> None:
        statement = StatementMapping("post.all", ("Post",))
        registry = PlanRegistry([plan_for(Post).build()], [statement])
        assert registry.statement("post.all") is statement

    def test_statement_not_found_error(self) -> None:
        registry = PlanRegistry([])
        with pytest.raises(StatementNotFoundError):
            registry.statement("post.all")

    def test_statement_with_unknown_plan_raises(self) -> None:
        with pytest.raises(PlanCompilationError, match="unknown plan"):
            PlanRegistry([], [StatementMapping("post.all", ("Post",))])

    def test_duplicate_statement_raises(self) -> None:
        plans = [plan_for(Post).build()]
        statements = [StatementMapping("post.all", ("Post",)), StatementMapping("post.all", ("Post",))]
        with pytest.raises(DuplicatePlanError):
            PlanRegistry(plans, statements)

    def test_unknown_discriminator_target_allowed(self) -> None:
        registry = PlanRegistry([plan_for(Post).discriminator("kind", {"x": "Missing"}).build()])
        assert registry.has("Post")
