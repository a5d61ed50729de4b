"""
Collaborator services: authorization, ownership and validation.
"""

from crudguard.services.authorization import (
    AllowAllAuthorizationService,
    AuthorizationService,
    InMemoryAuthorizationService,
    PermissionRule,
)
from crudguard.services.ownership import (
    FieldOwnershipService,
    NullOwnershipService,
    OwnershipService,
)
from crudguard.services.validation import (
    NullValidationService,
    PydanticValidationService,
    ValidationService,
)

__all__ = [
    "AuthorizationService",
    "AllowAllAuthorizationService",
    "InMemoryAuthorizationService",
    "PermissionRule",
    "OwnershipService",
    "NullOwnershipService",
    "FieldOwnershipService",
    "ValidationService",
    "NullValidationService",
    "PydanticValidationService",
]
