"""
Authorization services.

The authorization service answers two questions for an actor: may it
perform an action on a model at all, and which attributes of the model may
it use for that action. crudguard consumes the interface; the rule store
behind it belongs to the application.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Literal

from pydantic import BaseModel

from crudguard.core.actions import CrudAction
from crudguard.core.context import Principal
from crudguard.core.types import ModelDescriptor

PrincipalKind = Literal["user", "role"]


class AuthorizationService(ABC):
    """Interface consumed by the query builder and CRUD service."""

    @abstractmethod
    def has_model_permission(
        self,
        principal: Principal,
        model_name: str,
        action: CrudAction,
    ) -> bool:
        """Whether the principal may perform `action` on the model."""
        ...

    def authorized_attributes(
        self,
        principal: Principal,
        model: ModelDescriptor,
        action: CrudAction,
    ) -> list[str]:
        """
        Attributes the principal may use for `action`.

        Defaults to the attributes the model declares for the action.
        """
        return model.declared_attributes(action)


class AllowAllAuthorizationService(AuthorizationService):
    """Grants every action on every model. For development and tests."""

    def has_model_permission(
        self,
        principal: Principal,
        model_name: str,
        action: CrudAction,
    ) -> bool:
        return True


class PermissionRule(BaseModel):
    """A grant of one action on one model to a user or a role."""

    model: str
    action: CrudAction
    principal_kind: PrincipalKind
    principal_id: str

    # Restricts the grant to these attributes; None grants all declared ones
    attributes: tuple[str, ...] | None = None

    model_config = {"frozen": True}

    @property
    def permission_name(self) -> str:
        return self.action.permission_name(self.model)

    def applies_to(self, principal: Principal) -> bool:
        if self.principal_kind == "user":
            return self.principal_id == principal.user_id
        return principal.has_role(self.principal_id)


class InMemoryAuthorizationService(AuthorizationService):
    """
    Rule store kept in process memory.

    Rules are keyed by (model, action, principal kind, principal id); adding
    a rule for an existing key replaces it.

    Example:
        auth = InMemoryAuthorizationService()
        auth.add_rule("blog.models.Post", CrudAction.READ, "editor", is_role=True)
        auth.restrict_attributes("blog.models.Post", CrudAction.READ, ["id", "title"], "viewer")
    """

    def __init__(self, rules: Iterable[PermissionRule] = ()) -> None:
        self._rules: dict[tuple[str, CrudAction, str, str], PermissionRule] = {}
        for rule in rules:
            self._store(rule)

    def _store(self, rule: PermissionRule) -> PermissionRule:
        key = (rule.model, rule.action, rule.principal_kind, rule.principal_id)
        self._rules[key] = rule
        return rule

    # =========================================================================
    # INTERFACE
    # =========================================================================

    def has_model_permission(
        self,
        principal: Principal,
        model_name: str,
        action: CrudAction,
    ) -> bool:
        return any(True for _ in self._matching(principal, model_name, action))

    def authorized_attributes(
        self,
        principal: Principal,
        model: ModelDescriptor,
        action: CrudAction,
    ) -> list[str]:
        """
        Declared attributes narrowed by the principal's grants.

        Any unrestricted grant yields every declared attribute; otherwise
        the union of the restricted grants applies. No grant, no attributes.
        """
        declared = model.declared_attributes(action)
        granted: set[str] = set()
        matched = False
        for rule in self._matching(principal, model.name, action):
            matched = True
            if rule.attributes is None:
                return declared
            granted.update(rule.attributes)
        if not matched:
            return []
        return [a for a in declared if a in granted]

    def _matching(self, principal: Principal, model_name: str, action: CrudAction):
        for rule in self._rules.values():
            if rule.model == model_name and rule.action == action and rule.applies_to(principal):
                yield rule

    # =========================================================================
    # RULE MANAGEMENT
    # =========================================================================

    def add_rule(
        self,
        model: str,
        action: CrudAction | str,
        principal_id: str,
        is_role: bool = True,
        attributes: Iterable[str] | None = None,
    ) -> PermissionRule:
        """Grant an action on a model to a role (default) or a user."""
        return self._store(
            PermissionRule(
                model=model,
                action=CrudAction(action),
                principal_kind="role" if is_role else "user",
                principal_id=principal_id,
                attributes=tuple(attributes) if attributes is not None else None,
            )
        )

    def restrict_attributes(
        self,
        model: str,
        action: CrudAction | str,
        attributes: Iterable[str],
        principal_id: str,
        is_role: bool = True,
    ) -> PermissionRule:
        """Grant an action limited to the given attributes."""
        return self.add_rule(model, action, principal_id, is_role, attributes=attributes)

    def delete_rule(self, permission_name: str) -> int:
        """
        Remove every grant of a permission, e.g. "read blog.models.Post".

        Returns the number of rules removed.
        """
        action, model = CrudAction.parse_permission_name(permission_name)
        keys = [k for k in self._rules if k[0] == model and k[1] == action]
        for key in keys:
            del self._rules[key]
        return len(keys)

    def set_model_role_permission(
        self,
        model: str,
        action: CrudAction | str,
        role: str,
        granted: bool,
    ) -> None:
        """Grant or revoke an action for a role."""
        self._set_permission(model, CrudAction(action), "role", role, granted)

    def set_model_user_permission(
        self,
        model: str,
        action: CrudAction | str,
        user_id: str,
        granted: bool,
    ) -> None:
        """Grant or revoke an action for a user."""
        self._set_permission(model, CrudAction(action), "user", user_id, granted)

    def _set_permission(
        self,
        model: str,
        action: CrudAction,
        kind: PrincipalKind,
        principal_id: str,
        granted: bool,
    ) -> None:
        key = (model, action, kind, principal_id)
        if granted:
            if key not in self._rules:
                self._store(
                    PermissionRule(
                        model=model, action=action, principal_kind=kind, principal_id=principal_id
                    )
                )
        else:
            self._rules.pop(key, None)

    def sync_role_permissions(self, role: str, models: Iterable[str]) -> None:
        """Grant every CRUD action on each model to a role, keeping existing grants."""
        for model in models:
            for action in CrudAction:
                self._set_permission(model, action, "role", role, True)

    # =========================================================================
    # INSPECTION
    # =========================================================================

    def rules(self) -> list[PermissionRule]:
        return list(self._rules.values())

    def get_rules(
        self,
        role: str | None = None,
        user_id: str | None = None,
    ) -> dict[str, dict[str, dict[str, list[str]]]]:
        """
        Grants grouped as model -> action -> {"roles": [...], "users": [...]}.

        With role or user_id, only actions granted to that principal are kept.
        """
        grouped: dict[str, dict[str, dict[str, list[str]]]] = {}
        for rule in self._rules.values():
            entry = grouped.setdefault(rule.model, {}).setdefault(
                rule.action.value, {"roles": [], "users": []}
            )
            bucket = "roles" if rule.principal_kind == "role" else "users"
            entry[bucket].append(rule.principal_id)

        for actions in grouped.values():
            for entry in actions.values():
                entry["roles"].sort()
                entry["users"].sort()

        if role is None and user_id is None:
            return grouped

        filtered: dict[str, dict[str, dict[str, list[str]]]] = {}
        for model, actions in grouped.items():
            kept = {
                action: entry
                for action, entry in actions.items()
                if (role is None or role in entry["roles"])
                and (user_id is None or user_id in entry["users"])
            }
            if kept:
                filtered[model] = kept
        return filtered

    def roles(self) -> list[str]:
        """Roles that hold at least one grant."""
        return sorted({r.principal_id for r in self._rules.values() if r.principal_kind == "role"})

    def users(self) -> list[str]:
        """Users that hold at least one direct grant."""
        return sorted({r.principal_id for r in self._rules.values() if r.principal_kind == "user"})

    def permissions_for_role(self, role: str) -> list[str]:
        """Permission names granted to a role."""
        return sorted(
            r.permission_name
            for r in self._rules.values()
            if r.principal_kind == "role" and r.principal_id == role
        )
