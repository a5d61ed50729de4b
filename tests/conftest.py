"""
Shared test fixtures.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from blog_models import (
    COMMENT,
    POST,
    SECRET,
    TAG,
    USER,
    AuditEntry,
    Base,
    Comment,
    Post,
    Secret,
    Tag,
    User,
)
from crudguard.config import CrudConfig
from crudguard.core.context import Principal, RunContext
from crudguard.registry import ModelRegistry
from crudguard.service import CrudService
from crudguard.services import (
    FieldOwnershipService,
    InMemoryAuthorizationService,
    NullOwnershipService,
    PydanticValidationService,
)


# === Fixtures ===


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def session(engine):
    """Create a database session."""
    with Session(engine) as session:
        yield session


@pytest.fixture
def config():
    return CrudConfig(allowed_model_namespaces=["app.models"])


@pytest.fixture
def registry(config):
    """A registry with the test models registered."""
    registry = ModelRegistry(config)
    registry.register_crud_model(
        User,
        name=USER,
        fillable={
            "read": ["id", "name", "email"],
            "create": ["name", "email", "password_hash"],
            "update": ["name", "email"],
        },
    )
    registry.register_crud_model(
        Post,
        name=POST,
        rules={
            "create": {"title": str, "views": (int, 0)},
            "update": {"title": (str, None)},
        },
    )
    registry.register_crud_model(Comment, name=COMMENT)
    registry.register_crud_model(Tag, name=TAG)
    registry.register_crud_model(Secret, name=SECRET)
    return registry


@pytest.fixture
def principal():
    """Create a test principal."""
    return Principal(user_id="user-1", roles=("editor",))


@pytest.fixture
def context(session, principal):
    """Create a test run context."""
    return RunContext(principal=principal, db=session)


@pytest.fixture
def authorization():
    """Editors may do everything on posts and read the other models."""
    auth = InMemoryAuthorizationService()
    auth.sync_role_permissions("editor", [POST])
    for model in (USER, COMMENT, TAG):
        auth.add_rule(model, "read", "editor")
    return auth


@pytest.fixture
def service(config, registry, authorization):
    return CrudService(
        config=config,
        registry=registry,
        authorization=authorization,
        ownership=NullOwnershipService(),
        validation=PydanticValidationService(),
    )


@pytest.fixture
def owned_service(config, registry, authorization):
    """A service that scopes posts and comments to their owner."""
    return CrudService(
        config=config,
        registry=registry,
        authorization=authorization,
        ownership=FieldOwnershipService({POST: "owner_id", COMMENT: "owner_id"}),
        validation=PydanticValidationService(),
    )


@pytest.fixture
def seeded(session):
    """Populate the database with a small blog."""
    alice = User(id=1, name="Alice", email="alice@example.com", password_hash="x")
    bob = User(id=2, name="Bob", email="bob@example.com", password_hash="y")
    news = Tag(id=1, name="news")

    posts = [
        Post(
            id=1,
            title="Hello",
            body="First post",
            author=alice,
            owner_id="user-1",
            status="published",
            views=10,
            tags=[news],
        ),
        Post(id=2, title="Draft", body="Unfinished", author=alice, owner_id="user-1", views=0),
        Post(
            id=3,
            title="Other",
            body="Someone else's",
            author=bob,
            owner_id="user-2",
            status="published",
            views=50,
        ),
    ]
    comments = [
        Comment(id=1, post_id=1, author="alice", body="Nice", owner_id="user-1"),
        Comment(id=2, post_id=1, author="bob", body="Agreed", owner_id="user-2"),
        Comment(id=3, post_id=3, author="alice", body="Hmm", owner_id="user-1"),
    ]
    session.add_all([alice, bob, news, *posts, *comments])
    session.add(AuditEntry(id=1, post_id=1, message="created"))
    session.add(Secret(id=1, value="hunter2"))
    session.flush()
    session.expire_all()
    return session
