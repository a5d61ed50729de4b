"""
Request and result schemas for crudguard.

Filters are plain mappings so loosely-typed client input can be passed
through unchanged; the query builder decides per entry whether it is used
or dropped.

Example filter spec:
    {
        "status": "published",                       # equality
        "id": [1, 2, 3],                              # membership
        "views": {"operator": ">=", "value": 100},   # operator
        "author.name": {"operator": "like", "value": "ali"},
    }
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

FilterSpec = dict[str, Any]


class FilterOperator(str, Enum):
    """Operators accepted in an operator descriptor."""

    EQ = "="
    NE = "!="
    NOT = "not"
    SQL_NE = "<>"
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    LIKE = "like"
    BETWEEN = "between"
    IN = "in"
    NOT_IN = "not_in"


class RelationRequest(BaseModel):
    """
    A relation to eager-load.

    Example:
        {"relation": "comments", "attributes": ["id", "body"]}
    """

    relation: str = Field(..., description="The relation name to load")
    attributes: list[str] = Field(
        default_factory=list, description="Attributes to select on the related model"
    )

    model_config = {"frozen": True}


class ListRequest(BaseModel):
    """
    A paginated list request.

    Example:
        {
            "model": "blog.models.Post",
            "attributes": ["id", "title"],
            "relations": ["comments"],
            "relation_attributes": {"comments": ["body"]},
            "filters": {"status": "published"},
            "per_page": 25
        }
    """

    model: str
    attributes: list[str] = Field(default_factory=list)
    relations: list[str | RelationRequest] | None = None
    relation_attributes: dict[str, list[str]] = Field(default_factory=dict)
    filters: FilterSpec = Field(default_factory=dict)
    per_page: int | None = Field(default=None, ge=1)
    page: int = Field(default=1, ge=1)

    model_config = {"frozen": True}


class FindRequest(BaseModel):
    """A request for a single record by primary key."""

    model: str
    id: Any
    attributes: list[str] = Field(default_factory=list)
    relations: list[str | RelationRequest] | None = None
    relation_attributes: dict[str, list[str]] = Field(default_factory=dict)

    model_config = {"frozen": True}


class PagedResult(BaseModel):
    """One page of a list operation."""

    data: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    per_page: int
    current_page: int = 1
    last_page: int = 1

    model_config = {"frozen": True}


def normalize_relations(
    relations: list[str | RelationRequest] | None,
    relation_attributes: dict[str, list[str]] | None = None,
) -> list[RelationRequest]:
    """
    Merge the two accepted relation shapes into RelationRequests.

    Relations may be given as names plus a separate name -> attributes
    mapping, or as RelationRequest objects. Duplicates keep the first entry.
    """
    relation_attributes = relation_attributes or {}
    normalized: list[RelationRequest] = []
    seen: set[str] = set()
    for item in relations or []:
        if isinstance(item, RelationRequest):
            request = item
        else:
            request = RelationRequest(
                relation=item,
                attributes=list(relation_attributes.get(item, [])),
            )
        if request.relation in seen:
            continue
        seen.add(request.relation)
        normalized.append(request)
    return normalized
