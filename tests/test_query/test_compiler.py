"""
Tests for the SQLAlchemy compiler.
"""

import pytest
from sqlalchemy import inspect

from blog_models import COMMENT, POST, Comment, Post
from crudguard.query import QueryPlan, RelationLoad, SQLAlchemyCompiler


@pytest.fixture
def compiler():
    return SQLAlchemyCompiler()


@pytest.fixture
def post(registry):
    return registry.resolve(POST)


@pytest.fixture
def comment(registry):
    return registry.resolve(COMMENT)


def run(session, stmt):
    return session.execute(stmt).scalars().all()


class TestCompile:
    def test_unrestricted_plan(self, seeded, compiler, post):
        rows = run(seeded, compiler.compile(QueryPlan.for_model(post)))
        assert sorted(r.id for r in rows) == [1, 2, 3]

    def test_conditions_are_anded(self, seeded, compiler, post):
        plan = QueryPlan.for_model(post).where(Post.status == "published", Post.views > 20)
        assert [r.id for r in run(seeded, compiler.compile(plan))] == [3]

    def test_match_nothing(self, seeded, compiler, post):
        plan = QueryPlan.for_model(post).select(()).matching_nothing()
        assert run(seeded, compiler.compile(plan)) == []
        assert seeded.execute(compiler.compile_count(plan)).scalar_one() == 0

    def test_load_only_selected_columns(self, seeded, compiler, post):
        plan = QueryPlan.for_model(post).select(("title",))
        [row, *_] = run(seeded, compiler.compile_page(plan, per_page=1, page=1))
        unloaded = inspect(row).unloaded
        assert "title" not in unloaded
        assert "body" in unloaded

    def test_count_ignores_columns(self, seeded, compiler, post):
        plan = QueryPlan.for_model(post).select(("title",)).where(Post.owner_id == "user-1")
        assert seeded.execute(compiler.compile_count(plan)).scalar_one() == 2

    def test_pages_are_ordered_by_primary_key(self, seeded, compiler, post):
        plan = QueryPlan.for_model(post)
        assert [r.id for r in run(seeded, compiler.compile_page(plan, 2, 1))] == [1, 2]
        assert [r.id for r in run(seeded, compiler.compile_page(plan, 2, 2))] == [3]
        assert run(seeded, compiler.compile_page(plan, 2, 3)) == []

    def test_lookup_respects_conditions(self, seeded, compiler, post):
        plan = QueryPlan.for_model(post).where(Post.owner_id == "user-1")
        assert run(seeded, compiler.compile_lookup(plan, 1))[0].id == 1
        assert run(seeded, compiler.compile_lookup(plan, 3)) == []


class TestRelationLoads:
    def test_one_to_many_with_criteria(self, seeded, compiler, post, comment):
        plan = (
            QueryPlan.for_model(post)
            .select(("title",))
            .with_relation(
                RelationLoad(
                    relation="comments",
                    target=comment,
                    columns=("body", "id"),
                    conditions=(Comment.owner_id == "user-1",),
                )
            )
        )
        row = run(seeded, compiler.compile_lookup(plan, 1))[0]
        assert [c.body for c in row.comments] == ["Nice"]

    def test_relation_match_nothing(self, seeded, compiler, post, comment):
        plan = QueryPlan.for_model(post).with_relation(
            RelationLoad(relation="comments", target=comment, columns=("id",), match_nothing=True)
        )
        row = run(seeded, compiler.compile_lookup(plan, 1))[0]
        assert row.comments == []

    def test_many_to_one_loads_with_restricted_root_columns(self, seeded, compiler, post, registry):
        user = registry.resolve("app.models.User")
        plan = (
            QueryPlan.for_model(post)
            .select(("title",))
            .with_relation(RelationLoad(relation="author", target=user, columns=("name", "id")))
        )
        row = run(seeded, compiler.compile_lookup(plan, 3))[0]
        assert row.author.name == "Bob"

    def test_many_to_many(self, seeded, compiler, post, registry):
        tag = registry.resolve("app.models.Tag")
        plan = QueryPlan.for_model(post).with_relation(
            RelationLoad(relation="tags", target=tag, columns=("name", "id"))
        )
        rows = run(seeded, compiler.compile_page(plan, 10, 1))
        assert {r.id: [t.name for t in r.tags] for r in rows} == {1: ["news"], 2: [], 3: []}
