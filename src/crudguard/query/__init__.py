"""
Authorized query construction.
"""

from crudguard.query.builder import AuthorizedQueryBuilder
from crudguard.query.compiler import SQLAlchemyCompiler
from crudguard.query.operators import build_operator_condition, build_value_condition
from crudguard.query.plan import QueryPlan, RelationLoad

__all__ = [
    "AuthorizedQueryBuilder",
    "SQLAlchemyCompiler",
    "QueryPlan",
    "RelationLoad",
    "build_operator_condition",
    "build_value_condition",
]
