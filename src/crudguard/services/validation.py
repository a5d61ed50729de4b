"""
Validation services.

Rules are declared per model and action at registration:

    rules={
        "create": {
            "title": str,
            "views": (int, 0),
            "slug": (str, Field(pattern=r"^[a-z0-9-]+$")),
        },
    }

A bare type makes the field required; a (type, default) pair follows
pydantic's create_model conventions.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from pydantic import ConfigDict, ValidationError, create_model

from crudguard.core.errors import ValidationFailedError


class ValidationService(ABC):
    """Interface consumed by the CRUD service for create and update."""

    @abstractmethod
    def validate(self, data: Mapping[str, Any], rules: Mapping[str, Any]) -> None:
        """
        Check data against rules.

        Raises:
            ValidationFailedError: With field-level messages
        """
        ...


class NullValidationService(ValidationService):
    """Accepts any data."""

    def validate(self, data: Mapping[str, Any], rules: Mapping[str, Any]) -> None:
        return None


class PydanticValidationService(ValidationService):
    """Validates data with a pydantic model generated from the rules."""

    def validate(self, data: Mapping[str, Any], rules: Mapping[str, Any]) -> None:
        if not rules:
            return None

        fields: dict[str, Any] = {}
        for name, rule in rules.items():
            fields[name] = rule if isinstance(rule, tuple) else (rule, ...)

        validator = create_model(
            "CrudRules",
            __config__=ConfigDict(extra="ignore"),
            **fields,
        )
        try:
            validator.model_validate(dict(data))
        except ValidationError as e:
            raise ValidationFailedError(_field_errors(e)) from e
        return None


def _field_errors(error: ValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for item in error.errors():
        field = ".".join(str(part) for part in item["loc"]) or "__root__"
        errors.setdefault(field, []).append(item["msg"])
    return errors
