"""
Model registry.

Models are exposed for CRUD only through explicit registration. Request
input is matched against the registry by name; nothing is ever imported or
instantiated from a string.
"""

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from crudguard.config import CrudConfig
from crudguard.core.actions import CrudAction
from crudguard.core.errors import ConfigurationError, ModelNotFoundError
from crudguard.core.types import ModelDescriptor
from crudguard.logging import get_logger
from crudguard.registry.discovery import SchemaScanner
from crudguard.registry.introspection import SQLAlchemyIntrospector, is_mapped_entity

if TYPE_CHECKING:
    from crudguard.core.context import Principal
    from crudguard.services.authorization import AuthorizationService

logger = get_logger(__name__)

T = TypeVar("T", bound=type)

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9_.\\]")

FillableSpec = Iterable[str] | Mapping[CrudAction | str, Iterable[str]]
RulesSpec = Mapping[CrudAction | str, Mapping[str, Any]]


@dataclass(frozen=True)
class CrudRegistration:
    """A model class registered for CRUD exposure."""

    name: str
    model_class: type
    fillable: dict[CrudAction, tuple[str, ...]] = field(default_factory=dict)
    rules: dict[CrudAction, dict[str, Any]] = field(default_factory=dict)


def normalize_model_name(name: str) -> str | None:
    """
    Sanitize a requested model name into canonical dotted form.

    Returns None for names with characters outside [A-Za-z0-9_.\\] or with
    empty segments (which covers '..' and leading/trailing separators).
    """
    if not name or _UNSAFE_NAME.search(name):
        return None
    name = name.replace("\\", ".")
    if any(not segment for segment in name.split(".")):
        return None
    return name


class ModelRegistry:
    """
    Maps canonical model names to registered SQLAlchemy classes.

    Populated at startup; read-only afterwards.

    Example:
        registry = ModelRegistry(CrudConfig(allowed_model_namespaces=["blog.models"]))

        @registry.crud_model(name="blog.models.Post", fillable={"read": ["id", "title"]})
        class Post(Base):
            ...

        registry.resolve("blog.models.Post")
    """

    def __init__(self, config: CrudConfig) -> None:
        self.config = config
        self._by_name: dict[str, CrudRegistration] = {}
        self._by_class: dict[type, CrudRegistration] = {}
        self.introspector = SQLAlchemyIntrospector(self.name_for_class)
        self.scanner = SchemaScanner(config, self.resolve)

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register_crud_model(
        self,
        model_class: type,
        *,
        name: str | None = None,
        fillable: FillableSpec | None = None,
        rules: RulesSpec | None = None,
    ) -> CrudRegistration:
        """
        Opt a mapped class in to CRUD exposure.

        Args:
            model_class: A mapped SQLAlchemy class
            name: Canonical name (defaults to __crud_name__ or "<module>.<Class>")
            fillable: Attributes per action, or one list used for every action
            rules: Validation rules per action ({field: type or (type, default)})
        """
        if not is_mapped_entity(model_class):
            raise ConfigurationError(f"{model_class!r} is not a mapped SQLAlchemy class")

        raw_name = name or getattr(
            model_class, "__crud_name__", f"{model_class.__module__}.{model_class.__name__}"
        )
        canonical = normalize_model_name(raw_name)
        if canonical is None:
            raise ConfigurationError(f"Invalid model name: {raw_name!r}")
        if canonical in self._by_name and self._by_name[canonical].model_class is not model_class:
            raise ConfigurationError(f"Model name already registered: {canonical}")

        registration = CrudRegistration(
            name=canonical,
            model_class=model_class,
            fillable=_normalize_fillable(fillable),
            rules={CrudAction(action): dict(r) for action, r in (rules or {}).items()},
        )
        self._by_name[canonical] = registration
        self._by_class[model_class] = registration
        logger.debug("Registered CRUD model", model=canonical)
        return registration

    def crud_model(
        self,
        *,
        name: str | None = None,
        fillable: FillableSpec | None = None,
        rules: RulesSpec | None = None,
    ) -> Callable[[T], T]:
        """Decorator form of register_crud_model."""

        def decorator(model_class: T) -> T:
            self.register_crud_model(model_class, name=name, fillable=fillable, rules=rules)
            return model_class

        return decorator

    def name_for_class(self, model_class: type) -> str | None:
        """Canonical name of a registered class, or None."""
        registration = self._by_class.get(model_class)
        return registration.name if registration else None

    def registered_names(self) -> list[str]:
        """All registered canonical names."""
        return sorted(self._by_name)

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def is_namespace_allowed(self, name: str) -> bool:
        """Check a canonical name against the allowed namespace prefixes."""
        for namespace in self.config.allowed_model_namespaces:
            prefix = namespace.rstrip(".")
            if name == prefix or name.startswith(prefix + "."):
                return True
        return False

    def _lookup(self, name: str) -> CrudRegistration | None:
        canonical = normalize_model_name(name)
        if canonical is None:
            return None
        if not self.is_namespace_allowed(canonical):
            return None
        registration = self._by_name.get(canonical)
        if registration is None:
            return None
        if not is_mapped_entity(registration.model_class):
            return None
        return registration

    def verify(self, name: str) -> bool:
        """Run every resolution check without describing the model."""
        return self._lookup(name) is not None

    def resolve(self, name: str) -> ModelDescriptor:
        """
        Resolve a requested model name to a fresh descriptor.

        Raises:
            ModelNotFoundError: For any name that fails a check
        """
        registration = self._lookup(name)
        if registration is None:
            logger.debug("Model did not resolve", requested=name)
            raise ModelNotFoundError(name)

        return self.introspector.describe(
            registration.model_class,
            registration.name,
            fillable=registration.fillable,
            rules=registration.rules,
        )

    def resolve_relation(
        self,
        descriptor: ModelDescriptor,
        relation: str,
    ) -> ModelDescriptor | None:
        """
        Resolve the target of a relation declared on a descriptor.

        None if the relation does not exist or its target is not exposable.
        """
        rel = descriptor.get_relation(relation)
        if rel is None or rel.target is None:
            return None
        try:
            return self.resolve(rel.target)
        except ModelNotFoundError:
            return None

    # =========================================================================
    # DISCOVERY
    # =========================================================================

    def list_schemas(
        self,
        name: str | None = None,
        *,
        authorized_only: bool = False,
        authorization: "AuthorizationService | None" = None,
        principal: "Principal | None" = None,
    ) -> list[ModelDescriptor]:
        """
        Discover exposable models from the configured model paths.

        With authorized_only, keep models on which the principal holds at
        least one CRUD action.
        """
        descriptors = self.scanner.scan(name)
        if not authorized_only:
            return descriptors

        if authorization is None or principal is None:
            raise ConfigurationError(
                "authorized_only schema listing needs an authorization service and principal"
            )
        return [
            d
            for d in descriptors
            if any(
                authorization.has_model_permission(principal, d.name, action)
                for action in (
                    CrudAction.READ,
                    CrudAction.CREATE,
                    CrudAction.UPDATE,
                    CrudAction.DELETE,
                )
            )
        ]


def _normalize_fillable(fillable: FillableSpec | None) -> dict[CrudAction, tuple[str, ...]]:
    if fillable is None:
        return {}
    if isinstance(fillable, Mapping):
        return {CrudAction(action): tuple(attrs) for action, attrs in fillable.items()}
    attrs = tuple(fillable)
    return {action: attrs for action in CrudAction}
