"""
SQLAlchemy schema introspection.

Builds ModelDescriptors from mapped SQLAlchemy classes.
"""

from collections.abc import Callable
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.orm import Mapper, RelationshipProperty

from crudguard.core.actions import CrudAction
from crudguard.core.types import (
    DEFAULT_PRIMARY_KEY,
    ModelDescriptor,
    RelationDescriptor,
    RelationType,
)


def get_mapper(model_class: Any) -> Mapper | None:
    """Return the mapper of a mapped SQLAlchemy class, or None for anything else."""
    if not isinstance(model_class, type):
        return None
    mapper = inspect(model_class, raiseerr=False)
    if not isinstance(mapper, Mapper):
        return None
    return mapper


def is_mapped_entity(model_class: Any) -> bool:
    """Check that a class is a storage-backed SQLAlchemy entity."""
    mapper = get_mapper(model_class)
    return mapper is not None and mapper.local_table is not None


class SQLAlchemyIntrospector:
    """
    Describes mapped SQLAlchemy classes.

    Relation targets are reported by canonical name through name_for_class,
    which returns None for classes that are not registered for CRUD.
    """

    def __init__(self, name_for_class: Callable[[type], str | None]) -> None:
        self.name_for_class = name_for_class

    def describe(
        self,
        model_class: type,
        name: str,
        fillable: dict[CrudAction, tuple[str, ...]] | None = None,
        rules: dict[CrudAction, dict[str, Any]] | None = None,
    ) -> ModelDescriptor:
        """Introspect a single model."""
        mapper = get_mapper(model_class)
        if mapper is None:
            raise TypeError(f"{model_class!r} is not a mapped SQLAlchemy class")

        columns = tuple(attr.key for attr in mapper.column_attrs)
        relations = {
            rel.key: self._describe_relationship(rel) for rel in mapper.relationships
        }

        return ModelDescriptor(
            name=name,
            table_name=mapper.local_table.name,
            columns=columns,
            primary_key=self._primary_key(mapper),
            relations=relations,
            fillable=dict(fillable or {}),
            rules=dict(rules or {}),
            model_class=model_class,
        )

    def _describe_relationship(self, rel: RelationshipProperty) -> RelationDescriptor:
        if rel.uselist:
            if rel.secondary is not None:
                rel_type = RelationType.MANY_TO_MANY
            else:
                rel_type = RelationType.ONE_TO_MANY
        else:
            rel_type = RelationType.MANY_TO_ONE

        return RelationDescriptor(
            name=rel.key,
            target=self.name_for_class(rel.mapper.class_),
            relation_type=rel_type,
            uselist=bool(rel.uselist),
        )

    def _primary_key(self, mapper: Mapper) -> str:
        for column in mapper.primary_key:
            prop = mapper.get_property_by_column(column)
            return prop.key
        return DEFAULT_PRIMARY_KEY
