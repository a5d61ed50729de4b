"""
Authorized query builder.

Composes the authorization gate, ownership scoping, the attribute filter and
caller-supplied filters and relations into one QueryPlan.

Unauthorized or unrecognised parts of a request (filter keys, relations,
malformed operator values) are dropped, never errors. Only a denied root
model fails the request, and that check belongs to the caller.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import and_, false

from crudguard.core.actions import CrudAction
from crudguard.core.context import Principal
from crudguard.core.dsl import FilterSpec, RelationRequest, normalize_relations
from crudguard.core.types import ModelDescriptor
from crudguard.logging import get_logger
from crudguard.query.operators import build_value_condition
from crudguard.query.plan import QueryPlan, RelationLoad
from crudguard.registry.registry import ModelRegistry
from crudguard.services.authorization import AuthorizationService
from crudguard.services.ownership import OwnershipService

logger = get_logger(__name__)


class AuthorizedQueryBuilder:
    """
    Builds authorized query plans.

    Every plan that reads rows passes through scope_authorized_records, for
    the root model and for every relation it loads or filters on.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        authorization: AuthorizationService,
        ownership: OwnershipService,
    ) -> None:
        self.registry = registry
        self.authorization = authorization
        self.ownership = ownership

    # =========================================================================
    # PLANS
    # =========================================================================

    def build_list(
        self,
        model: ModelDescriptor,
        principal: Principal,
        attributes: Iterable[str] = (),
        relations: list[str | RelationRequest] | None = None,
        relation_attributes: Mapping[str, list[str]] | None = None,
        filters: FilterSpec | None = None,
        action: CrudAction = CrudAction.READ,
    ) -> QueryPlan:
        """Plan a list query: select, scope, filter, load relations."""
        plan = QueryPlan.for_model(model)
        plan = self.select_authorized(plan, model, attributes, action, principal)
        plan = self.scope_authorized_records(plan, model, action, principal)
        if plan.match_nothing:
            return plan

        if filters:
            plan = self.apply_filters(plan, model, filters, action, principal)
        if relations:
            plan = self.apply_relations(
                plan,
                model,
                normalize_relations(relations, dict(relation_attributes or {})),
                action,
                principal,
            )
        return plan

    def build_find(
        self,
        model: ModelDescriptor,
        principal: Principal,
        attributes: Iterable[str] = (),
        relations: list[str | RelationRequest] | None = None,
        relation_attributes: Mapping[str, list[str]] | None = None,
        action: CrudAction = CrudAction.READ,
    ) -> QueryPlan:
        """Plan a single-record read: select, scope, load relations."""
        return self.build_list(
            model,
            principal,
            attributes=attributes,
            relations=relations,
            relation_attributes=relation_attributes,
            filters=None,
            action=action,
        )

    def build_target(
        self,
        model: ModelDescriptor,
        principal: Principal,
        action: CrudAction,
    ) -> QueryPlan:
        """Plan the record lookup of an update or delete."""
        plan = QueryPlan.for_model(model)
        return self.scope_authorized_records(plan, model, action, principal)

    # =========================================================================
    # STAGES
    # =========================================================================

    def authorized_attributes(
        self,
        model: ModelDescriptor,
        action: CrudAction,
        requested: Iterable[str],
        principal: Principal,
    ) -> list[str]:
        """
        Intersect requested attributes with the authorized set.

        An empty request means every authorized attribute. The result keeps
        the model's column order.
        """
        authorized = [
            a
            for a in self.authorization.authorized_attributes(principal, model, action)
            if a in model.columns
        ]
        wanted = set(requested)
        if not wanted:
            return authorized
        return [a for a in authorized if a in wanted]

    def select_authorized(
        self,
        plan: QueryPlan,
        model: ModelDescriptor,
        requested: Iterable[str],
        action: CrudAction,
        principal: Principal,
    ) -> QueryPlan:
        """Restrict the plan's columns; with nothing selectable it matches no rows."""
        columns = self.authorized_attributes(model, action, requested, principal)
        if not columns:
            logger.debug("No authorized attributes, matching nothing", model=model.name)
            return plan.select(()).matching_nothing()
        return plan.select(columns)

    def scope_authorized_records(
        self,
        plan: QueryPlan,
        model: ModelDescriptor,
        action: CrudAction,
        principal: Principal,
    ) -> QueryPlan:
        """Attach the ownership predicate for this model and action."""
        return self.ownership.add_ownership_query(plan, model, action.value, principal)

    def apply_filters(
        self,
        plan: QueryPlan,
        model: ModelDescriptor,
        filters: FilterSpec,
        action: CrudAction,
        principal: Principal,
    ) -> QueryPlan:
        """
        Apply caller filters.

        Plain keys must be authorized attributes. "relation.attribute" keys
        need an existing relation to an authorized model and an authorized
        attribute there. Anything else is dropped.
        """
        authorized = set(self.authorized_attributes(model, action, (), principal))

        for key, value in filters.items():
            if not isinstance(key, str):
                continue

            if "." in key:
                condition = self._relation_filter(model, key, value, action, principal)
            elif key in authorized:
                condition = build_value_condition(plan.column(key), value)
                if condition is None:
                    logger.debug("Dropped malformed filter", model=model.name, filter=key)
            else:
                logger.debug("Dropped unauthorized filter", model=model.name, filter=key)
                condition = None

            if condition is not None:
                plan = plan.where(condition)

        return plan

    def apply_relations(
        self,
        plan: QueryPlan,
        model: ModelDescriptor,
        relations: list[RelationRequest],
        action: CrudAction,
        principal: Principal,
    ) -> QueryPlan:
        """
        Attach authorized relation loads.

        Each relation gets its own gate check, column restriction (primary
        key always included) and ownership scope. Relations of relations are
        not loaded.
        """
        for request in relations:
            target = self._authorized_relation_target(model, request.relation, action, principal)
            if target is None:
                continue

            columns = self.authorized_attributes(target, action, request.attributes, principal)
            scoped = self.scope_authorized_records(
                QueryPlan.for_model(target), target, action, principal
            )
            if columns and target.primary_key not in columns:
                columns.append(target.primary_key)

            plan = plan.with_relation(
                RelationLoad(
                    relation=request.relation,
                    target=target,
                    columns=tuple(columns) or (target.primary_key,),
                    conditions=scoped.conditions,
                    match_nothing=scoped.match_nothing or not columns,
                )
            )

        return plan

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _authorized_relation_target(
        self,
        model: ModelDescriptor,
        relation: str,
        action: CrudAction,
        principal: Principal,
    ) -> ModelDescriptor | None:
        """Resolve a relation's target if it exists and the gate allows the action."""
        if model.get_relation(relation) is None:
            logger.debug("Skipped unknown relation", model=model.name, relation=relation)
            return None

        target = self.registry.resolve_relation(model, relation)
        if target is None:
            logger.debug("Skipped unexposed relation", model=model.name, relation=relation)
            return None

        if not self.authorization.has_model_permission(principal, target.name, action):
            logger.debug(
                "Skipped unauthorized relation",
                model=model.name,
                relation=relation,
                target=target.name,
            )
            return None

        return target

    def _relation_filter(
        self,
        model: ModelDescriptor,
        key: str,
        value: Any,
        action: CrudAction,
        principal: Principal,
    ) -> Any:
        """Existence condition for a "relation.attribute" filter, or None."""
        relation, _, attribute = key.partition(".")
        target = self._authorized_relation_target(model, relation, action, principal)
        if target is None:
            return None

        if attribute not in self.authorized_attributes(target, action, (), principal):
            logger.debug("Dropped unauthorized filter", model=target.name, filter=key)
            return None

        condition = build_value_condition(getattr(target.model_class, attribute), value)
        if condition is None:
            logger.debug("Dropped malformed filter", model=model.name, filter=key)
            return None

        scoped = self.scope_authorized_records(
            QueryPlan.for_model(target), target, action, principal
        )
        criteria = false() if scoped.match_nothing else and_(condition, *scoped.conditions)

        relationship = getattr(model.model_class, relation)
        if model.relations[relation].uselist:
            return relationship.any(criteria)
        return relationship.has(criteria)
