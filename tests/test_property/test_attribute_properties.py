"""
Property-based tests for the attribute filter using Hypothesis.

Whatever the caller requests and whatever the actor is granted, the selected
attributes stay inside both sets, keep the model's column order, and an
empty selection returns no rows.
"""

from hypothesis import given, settings
from hypothesis import strategies as st
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from blog_models import POST, Base, Post
from crudguard.config import CrudConfig
from crudguard.core.actions import CrudAction
from crudguard.core.context import Principal
from crudguard.query import AuthorizedQueryBuilder, SQLAlchemyCompiler
from crudguard.registry import ModelRegistry
from crudguard.services import InMemoryAuthorizationService, NullOwnershipService

REGISTRY = ModelRegistry(CrudConfig(allowed_model_namespaces=["app.models"]))
REGISTRY.register_crud_model(Post, name=POST)
DESCRIPTOR = REGISTRY.resolve(POST)
COLUMNS = list(DESCRIPTOR.columns)

PRINCIPAL = Principal(user_id="u-1", roles=("viewer",))

ENGINE = create_engine("sqlite:///:memory:")
Base.metadata.create_all(ENGINE)
with Session(ENGINE) as _session:
    _session.add_all([Post(id=i, title=f"Post {i}", owner_id="u-1") for i in range(1, 4)])
    _session.commit()


# === Strategy Definitions ===

attribute_names = st.one_of(
    st.sampled_from(COLUMNS),
    st.text(min_size=1, max_size=20, alphabet="abcdefghijklmnopqrstuvwxyz_"),
)

requested_strategy = st.lists(attribute_names, max_size=10)

# None is an unrestricted grant; a list is a restricted one
grant_strategy = st.one_of(st.none(), st.lists(attribute_names, max_size=10))


def make_builder(grant):
    auth = InMemoryAuthorizationService()
    if grant is None:
        auth.add_rule(POST, CrudAction.READ, "viewer")
    else:
        auth.restrict_attributes(POST, CrudAction.READ, grant, "viewer")
    return AuthorizedQueryBuilder(REGISTRY, auth, NullOwnershipService())


def authorized_set(grant):
    return set(COLUMNS) if grant is None else set(grant) & set(COLUMNS)


class TestAttributeFilterProperties:
    """Properties of the attribute intersection."""

    @given(requested=requested_strategy, grant=grant_strategy)
    @settings(max_examples=200)
    def test_result_within_requested_and_authorized(self, requested, grant):
        builder = make_builder(grant)
        result = builder.authorized_attributes(DESCRIPTOR, CrudAction.READ, requested, PRINCIPAL)

        assert set(result) <= authorized_set(grant)
        if requested:
            assert set(result) == set(requested) & authorized_set(grant)

    @given(requested=requested_strategy, grant=grant_strategy)
    @settings(max_examples=200)
    def test_result_keeps_column_order(self, requested, grant):
        builder = make_builder(grant)
        result = builder.authorized_attributes(DESCRIPTOR, CrudAction.READ, requested, PRINCIPAL)

        positions = [COLUMNS.index(name) for name in result]
        assert positions == sorted(positions)
        assert len(result) == len(set(result))

    @given(grant=grant_strategy)
    def test_empty_request_means_all_authorized(self, grant):
        builder = make_builder(grant)
        result = builder.authorized_attributes(DESCRIPTOR, CrudAction.READ, [], PRINCIPAL)
        assert set(result) == authorized_set(grant)

    @given(requested=requested_strategy, grant=grant_strategy)
    @settings(max_examples=50, deadline=None)
    def test_empty_selection_returns_no_rows(self, requested, grant):
        builder = make_builder(grant)
        plan = builder.build_list(DESCRIPTOR, PRINCIPAL, attributes=requested)

        with Session(ENGINE) as session:
            rows = session.execute(SQLAlchemyCompiler().compile(plan)).scalars().all()

        if plan.columns:
            assert len(rows) == 3
        else:
            assert plan.match_nothing
            assert rows == []
