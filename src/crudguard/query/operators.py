"""
Filter operator dispatch.

Turns one filter value into a SQLAlchemy condition on a column. Malformed
values produce None, and the caller drops the filter entry.
"""

from collections.abc import Mapping
from typing import Any

from crudguard.core.dsl import FilterOperator

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, _SEQUENCE_TYPES)


def _is_scalar(value: Any) -> bool:
    return not isinstance(value, (*_SEQUENCE_TYPES, Mapping))


def build_value_condition(column: Any, value: Any) -> Any:
    """
    Build the condition for a filter value of any accepted shape.

    - scalar: equality
    - list/tuple/set: membership
    - mapping with "operator": operator dispatch
    - mapping without "operator": None
    """
    if isinstance(value, Mapping):
        if "operator" not in value:
            return None
        return build_operator_condition(column, value["operator"], value.get("value"))
    if _is_sequence(value):
        return column.in_(list(value))
    return column == value


def build_operator_condition(column: Any, operator: Any, value: Any) -> Any:
    """
    Build the condition for an {"operator": ..., "value": ...} descriptor.

    Operator strings are matched against a fixed vocabulary and never reach
    the SQL text; anything unrecognised (including "=") means equality.
    """
    op = operator.strip().lower() if isinstance(operator, str) else operator

    match op:
        case FilterOperator.BETWEEN.value:
            if isinstance(value, (list, tuple)) and len(value) == 2:
                return column.between(value[0], value[1])
            return None
        case FilterOperator.NOT_IN.value:
            if _is_sequence(value):
                return column.not_in(list(value))
            return None
        case FilterOperator.IN.value if _is_sequence(value):
            return column.in_(list(value))

    if not _is_scalar(value):
        return None

    match op:
        case FilterOperator.LIKE.value:
            if value is None:
                return None
            return column.like(f"%{value}%")
        case FilterOperator.NOT.value | FilterOperator.NE.value | FilterOperator.SQL_NE.value:
            return column != value
        case FilterOperator.GT.value:
            return column > value
        case FilterOperator.LT.value:
            return column < value
        case FilterOperator.GTE.value:
            return column >= value
        case FilterOperator.LTE.value:
            return column <= value
        case _:
            return column == value
