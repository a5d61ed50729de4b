"""
Ownership services for row-level scoping.

An ownership service adds the predicate that narrows a plan to rows the
actor owns or was granted. The query builder treats that predicate as
opaque.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from crudguard.core.context import Principal
from crudguard.core.types import ModelDescriptor

if TYPE_CHECKING:
    from crudguard.query.plan import QueryPlan


class OwnershipService(ABC):
    """Interface consumed by the query builder."""

    @abstractmethod
    def add_ownership_query(
        self,
        plan: "QueryPlan",
        model: ModelDescriptor,
        action: str,
        principal: Principal,
    ) -> "QueryPlan":
        """Return the plan narrowed to rows the principal may act on."""
        ...


class NullOwnershipService(OwnershipService):
    """Adds no row predicate: every row of an authorized model is visible."""

    def add_ownership_query(
        self,
        plan: "QueryPlan",
        model: ModelDescriptor,
        action: str,
        principal: Principal,
    ) -> "QueryPlan":
        return plan


class FieldOwnershipService(OwnershipService):
    """
    Scopes rows by an owner column.

    Injects `<owner column> = <principal value>` for every model that has a
    configured (or default) owner column.

    Args:
        owner_fields: Model canonical name -> owner column
        default_field: Owner column for models not in owner_fields
        owner_value: Value compared against the owner column (default: user_id)
        bypass_roles: Roles that see every row
        actions: Actions to scope (default: all)
        strict: Models without an owner column match nothing instead of everything
    """

    def __init__(
        self,
        owner_fields: Mapping[str, str] | None = None,
        default_field: str | None = None,
        owner_value: Callable[[Principal], Any] | None = None,
        bypass_roles: Iterable[str] = (),
        actions: Iterable[str] | None = None,
        strict: bool = False,
    ) -> None:
        self.owner_fields = dict(owner_fields or {})
        self.default_field = default_field
        self.owner_value = owner_value or (lambda principal: principal.user_id)
        self.bypass_roles = tuple(bypass_roles)
        self.actions = {str(getattr(a, "value", a)) for a in actions} if actions else None
        self.strict = strict

    def owner_field(self, model: ModelDescriptor) -> str | None:
        field = self.owner_fields.get(model.name, self.default_field)
        if field is None or field not in model.columns:
            return None
        return field

    def add_ownership_query(
        self,
        plan: "QueryPlan",
        model: ModelDescriptor,
        action: str,
        principal: Principal,
    ) -> "QueryPlan":
        if self.actions is not None and action not in self.actions:
            return plan
        if self.bypass_roles and principal.has_any_role(*self.bypass_roles):
            return plan

        field = self.owner_field(model)
        if field is None:
            return plan.matching_nothing() if self.strict else plan

        column = getattr(model.model_class, field)
        return plan.where(column == self.owner_value(principal))
