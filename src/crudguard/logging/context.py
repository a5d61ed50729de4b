"""
Logging context for crudguard.

Lets the CRUD service attach request fields (user, request id, model,
action) to every log line emitted while an operation runs.
"""

from __future__ import annotations

import contextvars
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from crudguard.core.context import RunContext

_log_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "crudguard_log_context",
    default=None,
)


def get_log_context() -> dict[str, Any]:
    """Get a copy of the current log context."""
    ctx = _log_context.get()
    return ctx.copy() if ctx else {}


def context_fields(ctx: RunContext) -> dict[str, Any]:
    """Log fields derived from a run context."""
    return {"user_id": ctx.principal.user_id, "request_id": ctx.request_id}


@contextmanager
def with_log_context(**fields: Any) -> Iterator[None]:
    """
    Add fields to the log context for the duration of a block.

    Fields are merged over the enclosing context and restored on exit.

    Example:
        with with_log_context(request_id="123", model="blog.models.Post"):
            logger.info("Listing records")
    """
    previous = _log_context.get()
    merged = previous.copy() if previous else {}
    merged.update({k: v for k, v in fields.items() if v is not None})
    token = _log_context.set(merged)
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextFilter(logging.Filter):
    """Injects the current log context into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in get_log_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
