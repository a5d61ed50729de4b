"""
Execution context for crudguard operations.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4


@dataclass(frozen=True)
class Principal:
    """
    The authenticated actor making a request.

    Authorization and ownership services evaluate rules against this identity.
    """

    user_id: str
    roles: tuple[str, ...] = field(default_factory=tuple)
    metadata: dict[str, Any] = field(default_factory=dict)

    def has_role(self, role: str) -> bool:
        """Check if the principal has a specific role."""
        return role in self.roles

    def has_any_role(self, *roles: str) -> bool:
        """Check if the principal has any of the specified roles."""
        return bool(set(roles) & set(self.roles))


@dataclass
class RunContext:
    """
    Context for a single CRUD request.

    Carries the principal for authorization and ownership scoping, the
    SQLAlchemy session that executes the query plans, and request tracking
    fields for logging.
    """

    principal: Principal
    db: Any  # SQLAlchemy Session
    request_id: str = field(default_factory=lambda: str(uuid4()))
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        *,
        user_id: str,
        db: Any,
        roles: tuple[str, ...] | list[str] = (),
        request_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "RunContext":
        """
        Convenience factory for creating a RunContext.

        Args:
            user_id: The acting user's ID
            db: The SQLAlchemy session
            roles: Roles held by the user
            request_id: Optional request ID (generated if not provided)
            metadata: Optional additional metadata
        """
        principal = Principal(user_id=user_id, roles=tuple(roles))
        return cls(
            principal=principal,
            db=db,
            request_id=request_id or str(uuid4()),
            metadata=metadata or {},
        )
