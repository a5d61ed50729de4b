"""
Tests for the authorized query builder.
"""

import pytest

from blog_models import COMMENT, POST, TAG, USER
from crudguard.core.actions import CrudAction
from crudguard.core.context import Principal
from crudguard.core.dsl import RelationRequest
from crudguard.query import AuthorizedQueryBuilder, QueryPlan
from crudguard.services import (
    AllowAllAuthorizationService,
    FieldOwnershipService,
    InMemoryAuthorizationService,
    NullOwnershipService,
)


@pytest.fixture
def builder(registry, authorization):
    return AuthorizedQueryBuilder(registry, authorization, NullOwnershipService())


@pytest.fixture
def post(registry):
    return registry.resolve(POST)


class TestAuthorizedAttributes:
    def test_empty_request_means_all_authorized(self, builder, post, principal):
        assert builder.authorized_attributes(post, CrudAction.READ, [], principal) == list(
            post.columns
        )

    def test_intersection_keeps_column_order(self, builder, post, principal):
        attributes = builder.authorized_attributes(
            post, CrudAction.READ, ["views", "title", "nope"], principal
        )
        assert attributes == ["title", "views"]

    def test_restricted_grant(self, registry, post):
        auth = InMemoryAuthorizationService()
        auth.restrict_attributes(POST, "read", ["id", "title"], "viewer")
        builder = AuthorizedQueryBuilder(registry, auth, NullOwnershipService())
        viewer = Principal(user_id="v", roles=("viewer",))

        assert builder.authorized_attributes(post, CrudAction.READ, [], viewer) == ["id", "title"]
        assert builder.authorized_attributes(
            post, CrudAction.READ, ["title", "body"], viewer
        ) == ["title"]

    def test_declared_attributes_bound_the_result(self, builder, registry, principal):
        user = registry.resolve(USER)
        attributes = builder.authorized_attributes(
            user, CrudAction.READ, ["name", "password_hash"], principal
        )
        assert attributes == ["name"]


class TestSelect:
    def test_selects_intersection(self, builder, post, principal):
        plan = builder.build_list(post, principal, attributes=["title"])
        assert plan.columns == ("title",)
        assert not plan.match_nothing

    def test_empty_intersection_matches_nothing(self, builder, post, principal):
        plan = builder.build_list(post, principal, attributes=["nope"])
        assert plan.columns == ()
        assert plan.match_nothing

    def test_matching_nothing_skips_later_stages(self, builder, post, principal):
        plan = builder.build_list(
            post, principal, attributes=["nope"], filters={"id": 1}, relations=["comments"]
        )
        assert plan.conditions == ()
        assert plan.relation_loads == ()


class TestFilters:
    def test_authorized_filters_apply(self, builder, post, principal):
        plan = builder.build_list(post, principal, filters={"status": "published", "id": [1]})
        assert len(plan.conditions) == 2

    def test_unauthorized_keys_are_dropped(self, registry, post):
        auth = InMemoryAuthorizationService()
        auth.restrict_attributes(POST, "read", ["id", "title"], "viewer")
        builder = AuthorizedQueryBuilder(registry, auth, NullOwnershipService())
        viewer = Principal(user_id="v", roles=("viewer",))

        plan = builder.build_list(post, viewer, filters={"body": "x", "title": "Hello"})
        assert len(plan.conditions) == 1

    def test_unknown_keys_and_malformed_values_are_dropped(self, builder, post, principal):
        plan = builder.build_list(
            post,
            principal,
            filters={
                "nope": 1,
                "views": {"operator": "between", "value": [1, 2, 3]},
                "status": {"value": "draft"},
                "title": "Hello",
            },
        )
        assert len(plan.conditions) == 1

    def test_relation_filter(self, builder, post, principal):
        plan = builder.build_list(post, principal, filters={"comments.author": "alice"})
        assert len(plan.conditions) == 1
        assert "EXISTS" in str(plan.conditions[0])

    def test_relation_filter_without_target_permission(self, registry, post):
        auth = InMemoryAuthorizationService()
        auth.add_rule(POST, "read", "editor")
        builder = AuthorizedQueryBuilder(registry, auth, NullOwnershipService())
        editor = Principal(user_id="e", roles=("editor",))

        plan = builder.build_list(post, editor, filters={"comments.author": "alice"})
        assert plan.conditions == ()

    @pytest.mark.parametrize(
        "key",
        ["missing.author", "audit_entries.message", "comments.nope", "author.password_hash"],
    )
    def test_invalid_relation_filters_are_dropped(self, builder, post, principal, key):
        plan = builder.build_list(post, principal, filters={key: "x"})
        assert plan.conditions == ()

    def test_relation_filter_carries_target_ownership(self, registry, authorization, post):
        ownership = FieldOwnershipService({COMMENT: "owner_id"})
        builder = AuthorizedQueryBuilder(registry, authorization, ownership)
        principal = Principal(user_id="user-1", roles=("editor",))

        plan = builder.build_list(post, principal, filters={"comments.author": "alice"})
        assert "comments.owner_id" in str(plan.conditions[0])


class TestRelations:
    def test_relation_load(self, builder, post, principal):
        plan = builder.build_list(post, principal, relations=["comments"])
        [load] = plan.relation_loads
        assert load.relation == "comments"
        assert load.target.name == COMMENT
        assert load.columns == load.target.columns
        assert not load.match_nothing

    def test_relation_attributes_force_primary_key(self, builder, post, principal):
        plan = builder.build_list(
            post, principal, relations=["comments"], relation_attributes={"comments": ["body"]}
        )
        assert plan.relation_loads[0].columns == ("body", "id")

    def test_relation_request_objects(self, builder, post, principal):
        plan = builder.build_list(
            post, principal, relations=[RelationRequest(relation="tags", attributes=["name"])]
        )
        assert plan.relation_loads[0].target.name == TAG
        assert plan.relation_loads[0].columns == ("name", "id")

    def test_unauthorized_relation_is_skipped(self, registry, post):
        auth = InMemoryAuthorizationService()
        auth.add_rule(POST, "read", "editor")
        auth.add_rule(USER, "read", "editor")
        builder = AuthorizedQueryBuilder(registry, auth, NullOwnershipService())
        editor = Principal(user_id="e", roles=("editor",))

        plan = builder.build_list(post, editor, relations=["comments", "author"])
        assert plan.loaded_relations() == ["author"]

    def test_unknown_and_unexposed_relations_are_skipped(self, builder, post, principal):
        plan = builder.build_list(post, principal, relations=["missing", "audit_entries"])
        assert plan.relation_loads == ()

    def test_relation_without_authorized_attributes_matches_nothing(
        self, builder, post, principal
    ):
        plan = builder.build_list(
            post, principal, relations=["author"], relation_attributes={"author": ["password_hash"]}
        )
        [load] = plan.relation_loads
        assert load.match_nothing

    def test_relation_gets_ownership_scope(self, registry, authorization, post):
        ownership = FieldOwnershipService({COMMENT: "owner_id"})
        builder = AuthorizedQueryBuilder(registry, authorization, ownership)
        principal = Principal(user_id="user-1", roles=("editor",))

        plan = builder.build_list(post, principal, relations=["comments"])
        assert len(plan.relation_loads[0].conditions) == 1


class TestScoping:
    def test_root_ownership(self, registry, post, principal):
        builder = AuthorizedQueryBuilder(
            registry, AllowAllAuthorizationService(), FieldOwnershipService({POST: "owner_id"})
        )
        plan = builder.build_list(post, principal)
        assert len(plan.conditions) == 1

    def test_build_target_only_scopes(self, registry, post, principal):
        builder = AuthorizedQueryBuilder(
            registry, AllowAllAuthorizationService(), FieldOwnershipService({POST: "owner_id"})
        )
        plan = builder.build_target(post, principal, CrudAction.DELETE)
        assert plan.columns is None
        assert len(plan.conditions) == 1

    def test_ownership_receives_action(self, registry, post, principal):
        seen = []

        class RecordingOwnership(NullOwnershipService):
            def add_ownership_query(self, plan, model, action, principal):
                seen.append((model.name, action))
                return plan

        builder = AuthorizedQueryBuilder(
            registry, AllowAllAuthorizationService(), RecordingOwnership()
        )
        builder.build_list(post, principal, relations=["comments"])
        builder.build_target(post, principal, CrudAction.UPDATE)
        assert seen == [(POST, "read"), (COMMENT, "read"), (POST, "update")]

    def test_plans_are_not_mutated(self, builder, post, principal):
        base = QueryPlan.for_model(post)
        scoped = builder.apply_filters(base, post, {"id": 1}, CrudAction.READ, principal)
        assert base.conditions == ()
        assert scoped is not base
