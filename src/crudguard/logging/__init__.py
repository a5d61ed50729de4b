"""
Structured logging for crudguard.
"""

from crudguard.logging.config import (
    CrudLogger,
    LogFormat,
    LogLevel,
    configure_logging,
    get_logger,
)
from crudguard.logging.context import ContextFilter, get_log_context, with_log_context
from crudguard.logging.formatters import JSONFormatter, TextFormatter

__all__ = [
    "configure_logging",
    "get_logger",
    "CrudLogger",
    "LogLevel",
    "LogFormat",
    "JSONFormatter",
    "TextFormatter",
    "ContextFilter",
    "get_log_context",
    "with_log_context",
]
