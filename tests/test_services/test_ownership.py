"""
Tests for ownership scoping services.
"""

from blog_models import COMMENT, POST, TAG, Post
from crudguard.core.actions import CrudAction
from crudguard.core.context import Principal
from crudguard.query import QueryPlan, SQLAlchemyCompiler
from crudguard.services import FieldOwnershipService, NullOwnershipService

OWNER = Principal(user_id="user-1")
ADMIN = Principal(user_id="admin", roles=("admin",))


def visible_ids(session, plan):
    stmt = SQLAlchemyCompiler().compile(plan).order_by(Post.id)
    return [r.id for r in session.execute(stmt).scalars()]


class TestNullOwnership:
    def test_plan_unchanged(self, registry):
        post = registry.resolve(POST)
        plan = QueryPlan.for_model(post)
        assert NullOwnershipService().add_ownership_query(plan, post, "read", OWNER) is plan


class TestFieldOwnership:
    def test_scopes_to_owner(self, seeded, registry):
        post = registry.resolve(POST)
        ownership = FieldOwnershipService({POST: "owner_id"})
        plan = ownership.add_ownership_query(QueryPlan.for_model(post), post, "read", OWNER)
        assert visible_ids(seeded, plan) == [1, 2]

    def test_default_field(self, registry):
        comment = registry.resolve(COMMENT)
        ownership = FieldOwnershipService(default_field="owner_id")
        plan = ownership.add_ownership_query(QueryPlan.for_model(comment), comment, "read", OWNER)
        assert len(plan.conditions) == 1

    def test_model_without_owner_column_is_unscoped(self, registry):
        tag = registry.resolve(TAG)
        ownership = FieldOwnershipService(default_field="owner_id")
        plan = ownership.add_ownership_query(QueryPlan.for_model(tag), tag, "read", OWNER)
        assert plan.conditions == ()
        assert not plan.match_nothing

    def test_strict_matches_nothing_without_owner_column(self, registry):
        tag = registry.resolve(TAG)
        ownership = FieldOwnershipService(default_field="owner_id", strict=True)
        plan = ownership.add_ownership_query(QueryPlan.for_model(tag), tag, "read", OWNER)
        assert plan.match_nothing

    def test_bypass_roles(self, seeded, registry):
        post = registry.resolve(POST)
        ownership = FieldOwnershipService({POST: "owner_id"}, bypass_roles=["admin"])
        plan = ownership.add_ownership_query(QueryPlan.for_model(post), post, "read", ADMIN)
        assert visible_ids(seeded, plan) == [1, 2, 3]

    def test_limited_actions(self, registry):
        post = registry.resolve(POST)
        ownership = FieldOwnershipService({POST: "owner_id"}, actions=[CrudAction.DELETE])
        read = ownership.add_ownership_query(QueryPlan.for_model(post), post, "read", OWNER)
        delete = ownership.add_ownership_query(QueryPlan.for_model(post), post, "delete", OWNER)
        assert read.conditions == ()
        assert len(delete.conditions) == 1

    def test_custom_owner_value(self, seeded, registry):
        post = registry.resolve(POST)
        ownership = FieldOwnershipService(
            {POST: "owner_id"},
            owner_value=lambda principal: principal.metadata["account"],
        )
        principal = Principal(user_id="x", metadata={"account": "user-2"})
        plan = ownership.add_ownership_query(QueryPlan.for_model(post), post, "read", principal)
        assert visible_ids(seeded, plan) == [3]
