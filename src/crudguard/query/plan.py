"""
Query plans.

A QueryPlan is the authorized query under construction. Each pipeline stage
takes a plan and returns a new one; nothing mutates a plan in place, so every
stage can be tested on its own and the compiler sees exactly what the stages
produced.
"""

from dataclasses import dataclass, field, replace
from typing import Any

from crudguard.core.types import ModelDescriptor


@dataclass(frozen=True)
class RelationLoad:
    """An eager-load directive for one relation of the root model."""

    relation: str
    target: ModelDescriptor
    columns: tuple[str, ...]
    conditions: tuple[Any, ...] = ()
    match_nothing: bool = False


@dataclass(frozen=True)
class QueryPlan:
    """
    The authorized query for one model.

    Attributes:
        model: Root model descriptor
        columns: Selected columns; None means not column-restricted
        conditions: SQLAlchemy boolean clauses, AND-ed together
        relation_loads: Relations to eager-load
        match_nothing: Fail-closed flag; the compiled query returns no rows
    """

    model: ModelDescriptor
    columns: tuple[str, ...] | None = None
    conditions: tuple[Any, ...] = ()
    relation_loads: tuple[RelationLoad, ...] = field(default_factory=tuple)
    match_nothing: bool = False

    @classmethod
    def for_model(cls, model: ModelDescriptor) -> "QueryPlan":
        """Start an empty plan for a model."""
        return cls(model=model)

    @property
    def model_class(self) -> type:
        return self.model.model_class

    def column(self, name: str) -> Any:
        """The mapped attribute for a column of the root model."""
        if name not in self.model.columns:
            raise KeyError(f"{self.model.name} has no column '{name}'")
        return getattr(self.model_class, name)

    def select(self, columns: list[str] | tuple[str, ...]) -> "QueryPlan":
        return replace(self, columns=tuple(columns))

    def where(self, *conditions: Any) -> "QueryPlan":
        return replace(self, conditions=self.conditions + tuple(conditions))

    def with_relation(self, load: RelationLoad) -> "QueryPlan":
        return replace(self, relation_loads=self.relation_loads + (load,))

    def matching_nothing(self) -> "QueryPlan":
        return replace(self, match_nothing=True)

    def loaded_relations(self) -> list[str]:
        return [load.relation for load in self.relation_loads]
