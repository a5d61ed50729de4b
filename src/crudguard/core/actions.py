"""
CRUD actions, the unit of permission granularity.
"""

from enum import Enum


class CrudAction(str, Enum):
    """Actions that can be granted on a model."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"

    def permission_name(self, model: str) -> str:
        """Permission string for this action on a model, e.g. 'read blog.models.Post'."""
        return f"{self.value} {model}"

    @classmethod
    def parse_permission_name(cls, permission: str) -> tuple["CrudAction", str]:
        """Split a permission string back into (action, model)."""
        action, _, model = permission.partition(" ")
        if not model:
            raise ValueError(f"Invalid permission name: {permission!r}")
        return cls(action), model
