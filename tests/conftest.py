"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

import pytest

from row_graph.core.config import Configuration, MappingSettings
from row_graph.mapping.builder import plan_for
from row_graph.mapping.materializer import Materializer
from row_graph.mapping.plan import MappingPlan, StatementMapping
from row_graph.mapping.registry import PlanRegistry

# --- Test models ---


@dataclass
class Post:
    id: int | None = None
    subject: str | None = None
    blog: Blog | None = None


@dataclass
class Blog:
    id: int | None = None
    title: str | None = None
    posts: list[Post] = field(default_factory=list)


# --- Fixtures ---


@pytest.fixture
def blog_plans() -> list[MappingPlan]:
    """Blog (identity ``blog_id``) with a joined ``posts`` collection."""
    return [
        plan_for(Blog)
        .id("id", "blog_id")
        .result("title", "blog_title")
        .collection("posts", "Post")
        .build(),
        plan_for(Post).id("id", "post_id").result("subject", "post_subject").build(),
    ]


@pytest.fixture
def blog_rows() -> list[dict[str, Any]]:
    return [
        {"blog_id": 1, "blog_title": "First", "post_id": 10, "post_subject": "a"},
        {"blog_id": 1, "blog_title": "First", "post_id": 11, "post_subject": "b"},
        {"blog_id": 2, "blog_title": "Second", "post_id": 12, "post_subject": "c"},
    ]


@pytest.fixture
def make_materializer() -> Callable[..., Materializer]:
    """Helper building a Materializer over plans and optional settings.

    Usage:
        materializer = make_materializer(plans, auto_mapping_behavior="full")
    """

    def _make(
        plans: Iterable[MappingPlan],
        statements: Iterable[StatementMapping] = (),
        query_executor: Any = None,
        **settings: Any,
    ) -> Materializer:
        configuration = Configuration(
            plans=PlanRegistry(plans, statements),
            settings=MappingSettings(**settings),
        )
        return Materializer(configuration, query_executor)

    return _make


@pytest.fixture
def statement() -> Callable[..., StatementMapping]:
    """Helper building a StatementMapping for one or more plan ids."""

    def _make(*plan_ids: str, **kwargs: Any) -> StatementMapping:
        return StatementMapping(statement_id="test.select", plan_ids=tuple(plan_ids), **kwargs)

    return _make
