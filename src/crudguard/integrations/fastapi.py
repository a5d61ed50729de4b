"""
FastAPI integration for crudguard.

Exposes a CrudService as REST endpoints.
"""

import json
from collections.abc import Callable
from typing import Any

from crudguard.core.context import Principal, RunContext
from crudguard.core.errors import (
    ConfigurationError,
    CrudGuardError,
    NotFoundError,
    ValidationFailedError,
)
from crudguard.logging import get_logger
from crudguard.service import CrudService

try:
    from fastapi import APIRouter, Body, HTTPException, Query, Request
    from fastapi.encoders import jsonable_encoder
    from fastapi.responses import JSONResponse
    HAS_FASTAPI = True
except ImportError:
    HAS_FASTAPI = False

logger = get_logger(__name__)

ANONYMOUS = Principal(user_id="anonymous")


class CrudRouter:
    """
    FastAPI router for crudguard models.

    Routes:
        GET    /schema
        GET    /models/{model}
        POST   /models/{model}
        GET    /models/{model}/{id}
        PUT    /models/{model}/{id}
        DELETE /models/{model}/{id}

    List and find accept `attributes` and `with` (repeatable), and a JSON
    `relation_attributes` object; list also takes `per_page`, `page` and a
    JSON `filters` object.

    Usage:
        from fastapi import FastAPI
        from crudguard.integrations.fastapi import CrudRouter

        app = FastAPI()

        crud_router = CrudRouter(
            service=service,
            get_principal=get_current_principal,
            get_db=get_db_session,
        )

        app.include_router(crud_router.router, prefix="/crud")
    """

    def __init__(
        self,
        service: CrudService,
        get_principal: Callable[..., Principal] | None = None,
        get_db: Callable[..., Any] | None = None,
        prefix: str = "",
    ) -> None:
        """
        Initialize the router.

        Args:
            service: The CRUD service to expose
            get_principal: Called with the request, returns the acting principal
            get_db: Called with the request, returns a SQLAlchemy session
            prefix: Optional path prefix for routes
        """
        if not HAS_FASTAPI:
            raise ImportError(
                "FastAPI is not installed. Install with: pip install crudguard[fastapi]"
            )

        self.service = service
        self.get_principal = get_principal
        self.get_db = get_db
        self.router = APIRouter(prefix=prefix)

        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up the API routes."""

        @self.router.get("/schema")
        def schema(
            request: Request,
            name: str | None = None,
            authorized_only: bool = False,
        ) -> Any:
            """List exposable models."""
            ctx = self._build_context(request)
            return self._respond(
                lambda: [
                    d.model_dump(mode="json")
                    for d in self.service.schema(ctx, name, authorized_only=authorized_only)
                ]
            )

        @self.router.get("/models/{model}")
        def list_records(
            model: str,
            request: Request,
            attributes: list[str] = Query(default=[]),
            with_: list[str] = Query(default=[], alias="with"),
            relation_attributes: str | None = None,
            filters: str | None = None,
            per_page: int | None = Query(default=None, ge=1),
            page: int = Query(default=1, ge=1),
        ) -> Any:
            """List one page of a model's records."""
            ctx = self._build_context(request)
            return self._respond(
                lambda: self.service.list(
                    ctx,
                    model,
                    attributes=_split(attributes),
                    relations=_split(with_),
                    relation_attributes=_parse_json(relation_attributes, "relation_attributes"),
                    filters=_parse_json(filters, "filters"),
                    per_page=per_page,
                    page=page,
                ).model_dump()
            )

        @self.router.get("/models/{model}/{id}")
        def find_record(
            model: str,
            id: str,
            request: Request,
            attributes: list[str] = Query(default=[]),
            with_: list[str] = Query(default=[], alias="with"),
            relation_attributes: str | None = None,
        ) -> Any:
            """Fetch one record."""
            ctx = self._build_context(request)
            return self._respond(
                lambda: self.service.find(
                    ctx,
                    model,
                    _coerce_id(id),
                    attributes=_split(attributes),
                    relations=_split(with_),
                    relation_attributes=_parse_json(relation_attributes, "relation_attributes"),
                )
            )

        @self.router.post("/models/{model}", status_code=201)
        def create_record(
            model: str,
            request: Request,
            data: dict[str, Any] = Body(...),
        ) -> Any:
            """Create a record."""
            ctx = self._build_context(request)
            return self._respond(lambda: self.service.create(ctx, model, data), status_code=201)

        @self.router.put("/models/{model}/{id}")
        def update_record(
            model: str,
            id: str,
            request: Request,
            data: dict[str, Any] = Body(...),
        ) -> Any:
            """Update a record."""
            ctx = self._build_context(request)
            return self._respond(lambda: self.service.update(ctx, model, _coerce_id(id), data))

        @self.router.delete("/models/{model}/{id}")
        def delete_record(model: str, id: str, request: Request) -> Any:
            """Delete a record."""
            ctx = self._build_context(request)
            return self._respond(
                lambda: {"deleted": self.service.delete(ctx, model, _coerce_id(id))}
            )

    def _build_context(self, request: "Request") -> RunContext:
        """Build a RunContext from the HTTP request."""
        principal = self.get_principal(request) if self.get_principal else ANONYMOUS
        db = self.get_db(request) if self.get_db else None
        request_id = request.headers.get("x-request-id")
        return RunContext.create(
            user_id=principal.user_id,
            roles=principal.roles,
            db=db,
            request_id=request_id,
            metadata=dict(principal.metadata),
        )

    def _respond(self, call: Callable[[], Any], status_code: int = 200) -> Any:
        """Run a service call and map crudguard errors to HTTP responses."""
        try:
            result = call()
        except NotFoundError as e:
            return JSONResponse(status_code=404, content={"error": e.to_dict()})
        except ValidationFailedError as e:
            return JSONResponse(status_code=422, content={"error": e.to_dict()})
        except ConfigurationError as e:
            logger.error("Service misconfigured", code=e.code, exc_info=e)
            return JSONResponse(status_code=500, content={"error": e.to_dict()})
        except CrudGuardError as e:
            logger.warning("Request failed", code=e.code)
            return JSONResponse(status_code=400, content={"error": e.to_dict()})
        return JSONResponse(status_code=status_code, content=jsonable_encoder(result))


def _split(values: list[str]) -> list[str]:
    """Accept both repeated parameters and comma separated lists."""
    return [part.strip() for value in values for part in value.split(",") if part.strip()]


def _parse_json(raw: str | None, name: str) -> dict[str, Any] | None:
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=422, detail=f"{name} must be a JSON object") from e
    if not isinstance(parsed, dict):
        raise HTTPException(status_code=422, detail=f"{name} must be a JSON object")
    return parsed


def _coerce_id(id: str) -> Any:
    """Path ids are strings; integer primary keys need ints."""
    return int(id) if id.isdigit() else id


def create_crud_router(
    service: CrudService,
    get_principal: Callable[..., Principal] | None = None,
    get_db: Callable[..., Any] | None = None,
    prefix: str = "/crud",
) -> Any:
    """
    Create a FastAPI router for a CRUD service.

    Usage:
        from fastapi import FastAPI
        from crudguard.integrations.fastapi import create_crud_router

        app = FastAPI()
        app.include_router(create_crud_router(service, get_db=get_db))
    """
    crud = CrudRouter(
        service=service,
        get_principal=get_principal,
        get_db=get_db,
        prefix=prefix,
    )
    return crud.router
