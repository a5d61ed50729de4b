"""
CRUD service.

The entry point for list, find, create, update and delete on registered
models. Every operation checks the authorization gate first, then resolves
the model, then builds an authorized query plan and executes it on the
context's session.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

from crudguard.config import CrudConfig
from crudguard.core.actions import CrudAction
from crudguard.core.context import RunContext
from crudguard.core.dsl import FilterSpec, FindRequest, ListRequest, PagedResult, RelationRequest
from crudguard.core.errors import NotAuthorizedError, RecordNotFoundError
from crudguard.core.types import ModelDescriptor
from crudguard.logging import get_logger, with_log_context
from crudguard.logging.context import context_fields
from crudguard.query.builder import AuthorizedQueryBuilder
from crudguard.query.compiler import SQLAlchemyCompiler
from crudguard.query.plan import QueryPlan
from crudguard.registry.registry import ModelRegistry, normalize_model_name
from crudguard.services.authorization import AuthorizationService
from crudguard.services.ownership import NullOwnershipService, OwnershipService
from crudguard.services.validation import PydanticValidationService, ValidationService

logger = get_logger(__name__)


class CrudService:
    """
    Authorized CRUD over registered SQLAlchemy models.

    Usage:
        service = CrudService(
            config=config,
            registry=registry,
            authorization=InMemoryAuthorizationService(),
            ownership=FieldOwnershipService({"blog.models.Post": "owner_id"}),
            validation=PydanticValidationService(),
        )

        ctx = RunContext.create(user_id="42", roles=["editor"], db=session)
        page = service.list(ctx, "blog.models.Post", attributes=["id", "title"])
    """

    def __init__(
        self,
        config: CrudConfig,
        registry: ModelRegistry,
        authorization: AuthorizationService,
        ownership: OwnershipService | None = None,
        validation: ValidationService | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.authorization = authorization
        self.ownership = ownership or NullOwnershipService()
        self.validation = validation or PydanticValidationService()
        self.builder = AuthorizedQueryBuilder(registry, authorization, self.ownership)
        self.compiler = SQLAlchemyCompiler()

    # =========================================================================
    # READ
    # =========================================================================

    def list(
        self,
        ctx: RunContext,
        model: str,
        attributes: Iterable[str] = (),
        relations: list[str | RelationRequest] | None = None,
        relation_attributes: Mapping[str, list[str]] | None = None,
        filters: FilterSpec | None = None,
        per_page: int | None = None,
        page: int = 1,
    ) -> PagedResult:
        """List one page of the records the actor may read."""
        with self._operation(ctx, "list", model, CrudAction.READ):
            descriptor = self._authorize(ctx, model, CrudAction.READ)
            plan = self.builder.build_list(
                descriptor,
                ctx.principal,
                attributes=attributes,
                relations=relations,
                relation_attributes=relation_attributes,
                filters=filters,
            )

            per_page = self.config.clamp_per_page(per_page)
            page = max(page, 1)
            total = ctx.db.execute(self.compiler.compile_count(plan)).scalar_one()
            rows = ctx.db.execute(self.compiler.compile_page(plan, per_page, page)).scalars().all()

            logger.debug("Listed records", count=len(rows), total=total)
            return PagedResult(
                data=[self._serialize(row, plan) for row in rows],
                total=total,
                per_page=per_page,
                current_page=page,
                last_page=max(1, math.ceil(total / per_page)),
            )

    def find(
        self,
        ctx: RunContext,
        model: str,
        id: Any,
        attributes: Iterable[str] = (),
        relations: list[str | RelationRequest] | None = None,
        relation_attributes: Mapping[str, list[str]] | None = None,
    ) -> dict[str, Any]:
        """
        Fetch one record the actor may read.

        Raises:
            NotAuthorizedError: The actor may not read the model
            ModelNotFoundError: The model name does not resolve
            RecordNotFoundError: No such record within the actor's scope
        """
        with self._operation(ctx, "find", model, CrudAction.READ):
            descriptor = self._authorize(ctx, model, CrudAction.READ)
            plan = self.builder.build_find(
                descriptor,
                ctx.principal,
                attributes=attributes,
                relations=relations,
                relation_attributes=relation_attributes,
            )
            row = ctx.db.execute(self.compiler.compile_lookup(plan, id)).scalars().first()
            if row is None:
                raise RecordNotFoundError(descriptor.name, id)
            return self._serialize(row, plan)

    def handle(self, ctx: RunContext, request: ListRequest | FindRequest) -> Any:
        """Run a validated list or find request body."""
        if isinstance(request, ListRequest):
            return self.list(
                ctx,
                request.model,
                attributes=request.attributes,
                relations=request.relations,
                relation_attributes=request.relation_attributes,
                filters=request.filters,
                per_page=request.per_page,
                page=request.page,
            )
        return self.find(
            ctx,
            request.model,
            request.id,
            attributes=request.attributes,
            relations=request.relations,
            relation_attributes=request.relation_attributes,
        )

    # =========================================================================
    # WRITE
    # =========================================================================

    def create(self, ctx: RunContext, model: str, data: Mapping[str, Any]) -> dict[str, Any]:
        """
        Create a record from the CREATE-authorized part of data.

        Raises:
            ValidationFailedError: data fails the model's create rules
        """
        with self._operation(ctx, "create", model, CrudAction.CREATE):
            descriptor = self._authorize(ctx, model, CrudAction.CREATE)
            self.validation.validate(data, descriptor.rules_for(CrudAction.CREATE))

            values = self._writable(ctx, descriptor, CrudAction.CREATE, data)
            instance = descriptor.model_class(**values)
            ctx.db.add(instance)
            ctx.db.flush()

            logger.info("Created record", id=getattr(instance, descriptor.primary_key))
            return self._serialize_written(ctx, descriptor, instance)

    def update(
        self,
        ctx: RunContext,
        model: str,
        id: Any,
        data: Mapping[str, Any],
    ) -> dict[str, Any]:
        """
        Update a record the actor may update with the UPDATE-authorized part of data.

        Raises:
            RecordNotFoundError: No such record within the actor's scope
            ValidationFailedError: data fails the model's update rules
        """
        with self._operation(ctx, "update", model, CrudAction.UPDATE):
            descriptor = self._authorize(ctx, model, CrudAction.UPDATE)
            instance = self._lookup_target(ctx, descriptor, id, CrudAction.UPDATE)
            self.validation.validate(data, descriptor.rules_for(CrudAction.UPDATE))

            for key, value in self._writable(ctx, descriptor, CrudAction.UPDATE, data).items():
                setattr(instance, key, value)
            ctx.db.flush()

            logger.info("Updated record", id=id)
            return self._serialize_written(ctx, descriptor, instance)

    def delete(self, ctx: RunContext, model: str, id: Any) -> bool:
        """
        Delete a record the actor may delete.

        Raises:
            RecordNotFoundError: No such record within the actor's scope
        """
        with self._operation(ctx, "delete", model, CrudAction.DELETE):
            descriptor = self._authorize(ctx, model, CrudAction.DELETE)
            instance = self._lookup_target(ctx, descriptor, id, CrudAction.DELETE)
            ctx.db.delete(instance)
            ctx.db.flush()

            logger.info("Deleted record", id=id)
            return True

    # =========================================================================
    # SCHEMA
    # =========================================================================

    def schema(
        self,
        ctx: RunContext,
        name: str | None = None,
        authorized_only: bool = False,
    ) -> list[ModelDescriptor]:
        """Discover exposable models, optionally only those the actor holds an action on."""
        with self._operation(ctx, "schema", name, None):
            return self.registry.list_schemas(
                name,
                authorized_only=authorized_only,
                authorization=self.authorization,
                principal=ctx.principal,
            )

    def authorized_attributes(
        self,
        ctx: RunContext,
        model: str,
        action: CrudAction | str,
    ) -> list[str]:
        """Attributes of a model the actor may use for an action."""
        action = CrudAction(action)
        with self._operation(ctx, "authorized_attributes", model, action):
            descriptor = self._authorize(ctx, model, action)
            return self.builder.authorized_attributes(descriptor, action, (), ctx.principal)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _operation(
        self,
        ctx: RunContext,
        operation: str,
        model: str | None,
        action: CrudAction | None,
    ) -> Any:
        return with_log_context(
            **context_fields(ctx),
            operation=operation,
            model=model,
            action=action.value if action else None,
        )

    def _authorize(self, ctx: RunContext, model: str, action: CrudAction) -> ModelDescriptor:
        """Check the gate, then resolve. A denial never touches the session."""
        name = normalize_model_name(model) or model
        if not self.authorization.has_model_permission(ctx.principal, name, action):
            logger.info("Action denied")
            raise NotAuthorizedError(model, action.value)
        return self.registry.resolve(model)

    def _lookup_target(
        self,
        ctx: RunContext,
        descriptor: ModelDescriptor,
        id: Any,
        action: CrudAction,
    ) -> Any:
        plan = self.builder.build_target(descriptor, ctx.principal, action)
        instance = ctx.db.execute(self.compiler.compile_lookup(plan, id)).scalars().first()
        if instance is None:
            raise RecordNotFoundError(descriptor.name, id)
        return instance

    def _writable(
        self,
        ctx: RunContext,
        descriptor: ModelDescriptor,
        action: CrudAction,
        data: Mapping[str, Any],
    ) -> dict[str, Any]:
        allowed = set(self.builder.authorized_attributes(descriptor, action, (), ctx.principal))
        dropped = sorted(k for k in data if k not in allowed)
        if dropped:
            logger.debug("Dropped unauthorized attributes", attributes=dropped)
        return {k: v for k, v in data.items() if k in allowed}

    def _serialize_written(
        self,
        ctx: RunContext,
        descriptor: ModelDescriptor,
        instance: Any,
    ) -> dict[str, Any]:
        """Serialize a written record over the actor's READ attributes plus the primary key."""
        columns = self.builder.authorized_attributes(
            descriptor, CrudAction.READ, (), ctx.principal
        )
        if descriptor.primary_key not in columns:
            columns.insert(0, descriptor.primary_key)
        return _row_to_dict(instance, columns)

    def _serialize(self, row: Any, plan: QueryPlan) -> dict[str, Any]:
        data = _row_to_dict(row, plan.columns or plan.model.columns)
        for load in plan.relation_loads:
            related = getattr(row, load.relation)
            if related is None:
                data[load.relation] = None
            elif plan.model.relations[load.relation].uselist:
                data[load.relation] = [_row_to_dict(r, load.columns) for r in related]
            else:
                data[load.relation] = _row_to_dict(related, load.columns)
        return data


def _row_to_dict(row: Any, columns: Iterable[str]) -> dict[str, Any]:
    data = {}
    for column in columns:
        value = getattr(row, column, None)
        # Handle datetime serialization
        if hasattr(value, "isoformat"):
            value = value.isoformat()
        data[column] = value
    return data
