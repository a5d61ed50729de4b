"""
Core types, context and errors for crudguard.
"""

from crudguard.core.actions import CrudAction
from crudguard.core.context import Principal, RunContext
from crudguard.core.dsl import (
    FilterOperator,
    FilterSpec,
    FindRequest,
    ListRequest,
    PagedResult,
    RelationRequest,
)
from crudguard.core.errors import (
    ConfigurationError,
    CrudGuardError,
    ModelNotFoundError,
    NotAuthorizedError,
    NotFoundError,
    RecordNotFoundError,
    ValidationFailedError,
)
from crudguard.core.types import ModelDescriptor, RelationDescriptor, RelationType

__all__ = [
    "CrudAction",
    "Principal",
    "RunContext",
    "FilterOperator",
    "FilterSpec",
    "FindRequest",
    "ListRequest",
    "PagedResult",
    "RelationRequest",
    "CrudGuardError",
    "ConfigurationError",
    "NotFoundError",
    "ModelNotFoundError",
    "RecordNotFoundError",
    "NotAuthorizedError",
    "ValidationFailedError",
    "ModelDescriptor",
    "RelationDescriptor",
    "RelationType",
]
