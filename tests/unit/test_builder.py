"""Unit tests for mapping plan data classes and the MappingPlanBuilder DSL."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from row_graph.core.enums import ValueSource
from row_graph.core.exceptions import PlanCompilationError
from row_graph.mapping.builder import plan_for
from row_graph.mapping.plan import (
    FieldMapping,
    MappingPlan,
    RowWindow,
    StatementMapping,
    prepend_prefix,
)


@dataclass
class Author:
    id: int
    name: str


@dataclass
class Post:
    id: int
    subject: str


@dataclass
class Blog:
    id: int
    title: str
    author: Author | None = None
    posts: list[Post] = field(default_factory=list)


class TestPlanDataClasses:
    def test_mapping_plan_frozen(self) -> None:
        plan = MappingPlan(plan_id="Blog", target_type=Blog)
        with pytest.raises(AttributeError):
            plan.plan_id = "Other"  # type: ignore[misc]

    def test_field_mapping_frozen(self) -> None:
        mapping = FieldMapping(property="id", column="id")
        with pytest.raises(AttributeError):
            mapping.column = "other"  # type: ignore[misc]

    def test_statement_mapping_frozen(self) -> None:
        statement = StatementMapping(statement_id="blog.all", plan_ids=("Blog",))
        with pytest.raises(AttributeError):
            statement.result_ordered = True  # type: ignore[misc]

    def test_value_source_resolved(self) -> None:
        assert FieldMapping(property="id", column="id").source is ValueSource.COLUMN
        assert FieldMapping(property="a", nested_plan_id="Author").source is ValueSource.NESTED_PLAN
        assert FieldMapping(property="a", nested_query_id="q").source is ValueSource.NESTED_QUERY
        assert (
            FieldMapping(property="p", nested_plan_id="Post", result_set="posts").source
            is ValueSource.RESULT_SET
        )

    def test_joined_flag_follows_value_source(self) -> None:
        queried = FieldMapping(property="a", nested_plan_id="Author", nested_query_id="q", column="a_id")
        linked = FieldMapping(property="p", nested_plan_id="Post", result_set="posts")

        assert queried.source is ValueSource.NESTED_QUERY
        assert not queried.is_joined_nested
        assert not linked.is_joined_nested
        assert FieldMapping(property="a", nested_plan_id="Author").is_joined_nested

    def test_row_window_bounds(self) -> None:
        assert not RowWindow().is_bounded
        assert RowWindow(offset=5).is_bounded
        assert RowWindow(limit=0).is_bounded

    def test_prepend_prefix(self) -> None:
        assert prepend_prefix("id", "post_") == "post_id"
        assert prepend_prefix("id", None) == "id"
        assert prepend_prefix(None, "post_") is None


class TestMappingPlanBuilder:
    def test_plan_id_defaults_to_class_name(self) -> None:
        assert plan_for(Blog).build().plan_id == "Blog"
        assert plan_for(dict, "row").build().plan_id == "row"

    def test_id_and_result(self) -> None:
        plan = plan_for(Blog).id("id", "blog_id").result("title").build()

        assert [m.property for m in plan.identity_mappings] == ["id"]
        assert [m.column for m in plan.property_mappings] == ["blog_id", "title"]
        assert plan.mapped_columns == frozenset({"BLOG_ID", "TITLE"})
        assert plan.mapped_properties == frozenset({"id", "title"})

    def test_constructor_args_kept_in_order(self) -> None:
        plan = plan_for(Author).constructor_arg("id", identity=True).constructor_arg("name").build()

        assert [m.property for m in plan.constructor_mappings] == ["id", "name"]
        assert plan.property_mappings == ()
        assert [m.property for m in plan.identity_mappings] == ["id"]

    def test_collection_marks_nested_plans(self) -> None:
        plan = plan_for(Blog).id("id").collection("posts", "Post", column_prefix="post_").build()

        assert plan.has_nested_plans
        mapping = plan.property_mappings[1]
        assert mapping.is_joined_nested
        assert mapping.column_prefix == "post_"
        assert mapping.value_type is list

    def test_linked_result_set_is_not_joined(self) -> None:
        plan = (
            plan_for(Blog)
            .id("id")
            .collection("posts", "Post", column="id", foreign_column="blog_id", result_set="posts")
            .build()
        )

        assert not plan.has_nested_plans

    def test_nested_query_flags(self) -> None:
        plan = plan_for(Blog).association("author", nested_query="author.by_id", column="author_id").build()

        assert plan.has_nested_queries
        assert not plan.has_nested_plans

    def test_composite_column(self) -> None:
        plan = (
            plan_for(Blog)
            .association("author", nested_query="q", column={"id": "author_id", "region": "region"})
            .build()
        )

        mapping = plan.property_mappings[0]
        assert mapping.is_composite
        assert mapping.column is None
        assert plan.mapped_columns == frozenset({"AUTHOR_ID", "REGION"})

    def test_discriminator_keys_stringified(self) -> None:
        plan = plan_for(Blog).discriminator("kind", {1: "A", "b": "B"}).build()

        assert plan.discriminator is not None
        assert plan.discriminator.plan_id_for("1") == "A"
        assert plan.discriminator.plan_id_for("b") == "B"
        assert plan.discriminator.plan_id_for("c") is None

    def test_auto_mapping_override(self) -> None:
        assert plan_for(Blog).build().auto_mapping is None
        assert plan_for(Blog).auto_mapping(False).build().auto_mapping is False

    def test_property_mapped_twice_raises(self) -> None:
        with pytest.raises(PlanCompilationError, match="mapped twice"):
            plan_for(Blog).result("title").result("title", "other").build()

    def test_related_needs_exactly_one_source(self) -> None:
        with pytest.raises(PlanCompilationError):
            plan_for(Blog).association("author")
        with pytest.raises(PlanCompilationError):
            plan_for(Blog).association("author", "Author", nested_query="q")

    def test_only_nested_queries_are_lazy(self) -> None:
        with pytest.raises(PlanCompilationError, match="lazy"):
            plan_for(Blog).association("author", "Author", lazy=True)

    def test_result_set_needs_nested_plan(self) -> None:
        with pytest.raises(PlanCompilationError):
            plan_for(Blog).collection(
                "posts", nested_query="q", column="id", foreign_column="blog_id", result_set="posts"
            )

    def test_empty_plan_id_raises(self) -> None:
        with pytest.raises(PlanCompilationError):
            plan_for(Blog, "").build()
