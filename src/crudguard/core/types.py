"""
Shared type definitions for crudguard.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from crudguard.core.actions import CrudAction

DEFAULT_PRIMARY_KEY = "id"


class RelationType(str, Enum):
    """Supported relation types."""

    ONE_TO_MANY = "one_to_many"
    MANY_TO_ONE = "many_to_one"
    MANY_TO_MANY = "many_to_many"


class RelationDescriptor(BaseModel):
    """
    A relation declared on a model.

    The target is referenced by canonical name only; its descriptor is
    resolved through the registry when the relation is actually used.
    """

    name: str
    target: str | None  # None when the target class is not CRUD-registered
    relation_type: RelationType
    uselist: bool

    model_config = {"frozen": True}


class ModelDescriptor(BaseModel):
    """
    Describes one model exposed for CRUD.

    Only ever built by the registry for classes that passed verification.
    """

    name: str
    table_name: str
    columns: tuple[str, ...]
    primary_key: str = DEFAULT_PRIMARY_KEY
    relations: dict[str, RelationDescriptor] = Field(default_factory=dict)

    # Per-action attributes declared by the model (None means all columns)
    fillable: dict[CrudAction, tuple[str, ...]] = Field(default_factory=dict)

    # Per-action validation rules, consumed by the ValidationService
    rules: dict[CrudAction, dict[str, Any]] = Field(default_factory=dict, exclude=True)

    model_class: Any = Field(default=None, exclude=True, repr=False)

    model_config = {"frozen": True}

    def declared_attributes(self, action: CrudAction) -> list[str]:
        """
        Attributes the model declares for an action, in column order.

        Without a declaration every column is allowed, except that the
        primary key is never written unless a fillable list names it.
        """
        declared = self.fillable.get(action)
        if declared is None:
            if action in (CrudAction.CREATE, CrudAction.UPDATE):
                return [c for c in self.columns if c != self.primary_key]
            return list(self.columns)
        return [c for c in self.columns if c in declared]

    def rules_for(self, action: CrudAction) -> dict[str, Any]:
        """Validation rules declared for an action."""
        return dict(self.rules.get(action, {}))

    def get_relation(self, name: str) -> RelationDescriptor | None:
        """Get a relation by name."""
        return self.relations.get(name)
