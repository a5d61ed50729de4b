"""
Configuration for crudguard.

The configuration is loaded once at process start and passed explicitly to
the registry and the CRUD service. It is immutable.
"""

import os
import re
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "CRUDGUARD_"


class CrudConfig(BaseModel):
    """
    crudguard settings.

    Example:
        CrudConfig(
            allowed_model_namespaces=["blog.models"],
            model_paths=["src/blog/models"],
        )
    """

    # Prefixes a model's canonical name must start with to be exposed
    allowed_model_namespaces: tuple[str, ...] = Field(default_factory=tuple)

    # Directories scanned for candidate model definitions
    model_paths: tuple[Path, ...] = Field(default_factory=tuple)

    # Default and maximum page size for list operations
    per_page: int = Field(default=15, ge=1)
    max_per_page: int = Field(default=100, ge=1)

    model_config = {"frozen": True}

    @field_validator("allowed_model_namespaces", mode="before")
    @classmethod
    def normalize_namespaces(cls, v: object) -> object:
        """Accept backslash-separated namespaces and drop empty entries."""
        if isinstance(v, str):
            v = [v]
        if isinstance(v, (list, tuple)):
            return tuple(
                str(ns).replace("\\", ".").strip() for ns in v if str(ns).strip()
            )
        return v

    @field_validator("model_paths", mode="before")
    @classmethod
    def normalize_paths(cls, v: object) -> object:
        if isinstance(v, (str, Path)):
            v = [v]
        return v

    def clamp_per_page(self, per_page: int | None) -> int:
        """Resolve a requested page size against the configured default and maximum."""
        if per_page is None or per_page < 1:
            return self.per_page
        return min(per_page, self.max_per_page)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "CrudConfig":
        """
        Build a configuration from environment variables.

        Reads CRUDGUARD_ALLOWED_MODEL_NAMESPACES and CRUDGUARD_MODEL_PATHS
        (comma or os.pathsep separated lists), CRUDGUARD_PER_PAGE and
        CRUDGUARD_MAX_PER_PAGE.
        """
        environ = os.environ if environ is None else environ
        values: dict[str, object] = {
            "allowed_model_namespaces": _split_list(
                environ.get(f"{ENV_PREFIX}ALLOWED_MODEL_NAMESPACES", "")
            ),
            "model_paths": _split_list(environ.get(f"{ENV_PREFIX}MODEL_PATHS", "")),
        }
        if per_page := environ.get(f"{ENV_PREFIX}PER_PAGE"):
            values["per_page"] = int(per_page)
        if max_per_page := environ.get(f"{ENV_PREFIX}MAX_PER_PAGE"):
            values["max_per_page"] = int(max_per_page)
        return cls(**values)


def _split_list(raw: str) -> list[str]:
    separators = "," + re.escape(os.pathsep)
    return [part.strip() for part in re.split(f"[{separators}]", raw) if part.strip()]
