"""
crudguard - authorized CRUD over SQLAlchemy models.

crudguard exposes explicitly registered SQLAlchemy models through a generic
list/find/create/update/delete service. Every request passes an action gate,
attribute filtering and row-level ownership scoping before it reaches the
database; anything a caller may not see is dropped or reported as not found.
"""

__version__ = "0.1.0"

from crudguard.config import CrudConfig
from crudguard.core.actions import CrudAction
from crudguard.core.context import Principal, RunContext
from crudguard.core.dsl import PagedResult, RelationRequest
from crudguard.core.errors import (
    ConfigurationError,
    CrudGuardError,
    ModelNotFoundError,
    NotAuthorizedError,
    NotFoundError,
    RecordNotFoundError,
    ValidationFailedError,
)
from crudguard.registry import ModelRegistry
from crudguard.service import CrudService
from crudguard.services import (
    AllowAllAuthorizationService,
    AuthorizationService,
    FieldOwnershipService,
    InMemoryAuthorizationService,
    NullOwnershipService,
    NullValidationService,
    OwnershipService,
    PydanticValidationService,
    ValidationService,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "CrudConfig",
    # Context
    "CrudAction",
    "Principal",
    "RunContext",
    "PagedResult",
    "RelationRequest",
    # Errors
    "CrudGuardError",
    "ConfigurationError",
    "NotFoundError",
    "ModelNotFoundError",
    "RecordNotFoundError",
    "NotAuthorizedError",
    "ValidationFailedError",
    # Registry
    "ModelRegistry",
    # Service
    "CrudService",
    "AuthorizationService",
    "AllowAllAuthorizationService",
    "InMemoryAuthorizationService",
    "OwnershipService",
    "NullOwnershipService",
    "FieldOwnershipService",
    "ValidationService",
    "NullValidationService",
    "PydanticValidationService",
]
