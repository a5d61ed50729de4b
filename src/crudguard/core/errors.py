"""
Error taxonomy for crudguard.

All crudguard errors inherit from CrudGuardError and include:
- A unique error code for programmatic handling
- A human-readable message
- Optional details safe to return to the caller
"""

from typing import Any


class CrudGuardError(Exception):
    """
    Base class for all crudguard errors.

    Attributes:
        code: Unique error code for programmatic handling
        message: Human-readable error message
        details: Additional error context
    """

    code: str = "CRUDGUARD_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a dictionary for serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(CrudGuardError):
    """A model or record could not be found."""

    code = "NOT_FOUND"


class ModelNotFoundError(NotFoundError):
    """The model name does not resolve to an exposable model."""

    def __init__(self, model: str, **kwargs: Any) -> None:
        super().__init__(f"Model not found: '{model}'", **kwargs)
        self.model = model


class RecordNotFoundError(NotFoundError):
    """
    A record lookup returned nothing.

    Records hidden by ownership scoping raise this too, so their existence
    is never revealed.
    """

    def __init__(self, model: str, id: Any, **kwargs: Any) -> None:
        super().__init__(f"Record not found: {model} with id '{id}'", **kwargs)
        self.model = model
        self.id = id


class NotAuthorizedError(NotFoundError):
    """
    The actor lacks the required action permission on a model.

    Serialized exactly like a NotFoundError: callers must not be able to
    tell a forbidden model from a missing one.
    """

    def __init__(self, model: str, action: str, **kwargs: Any) -> None:
        super().__init__(f"Model not found: '{model}'", **kwargs)
        self.model = model
        self.action = action


class ValidationFailedError(CrudGuardError):
    """Input data failed the model's declared rules for an action."""

    code = "VALIDATION_FAILED"

    def __init__(
        self,
        errors: dict[str, list[str]],
        message: str = "The given data was invalid",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, details={"errors": errors}, **kwargs)
        self.errors = errors


class ConfigurationError(CrudGuardError):
    """crudguard was configured inconsistently (e.g. a bad model registration)."""

    code = "CONFIGURATION_ERROR"
