"""
Model registry and schema discovery.
"""

from crudguard.registry.discovery import SchemaScanner, read_namespace
from crudguard.registry.introspection import SQLAlchemyIntrospector, is_mapped_entity
from crudguard.registry.registry import (
    CrudRegistration,
    ModelRegistry,
    normalize_model_name,
)

__all__ = [
    "ModelRegistry",
    "CrudRegistration",
    "SchemaScanner",
    "SQLAlchemyIntrospector",
    "is_mapped_entity",
    "normalize_model_name",
    "read_namespace",
]
