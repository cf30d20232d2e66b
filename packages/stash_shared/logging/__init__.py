"""Public logging API for Stash components.

This package wraps Python's ``logging`` module with stdout defaults and
structured context propagation.
"""

from . import fields
from .config import configure_logging, get_logger
from .context import bind_context, clear_context, get_context, log_context
from .public_api import (
    CompletionContext,
    InvocationContext,
    PublicApiInstrumentationConcern,
    PublicApiLoggingConcern,
    public_api_instrumented,
)

__all__ = [
    "bind_context",
    "clear_context",
    "CompletionContext",
    "configure_logging",
    "fields",
    "get_context",
    "get_logger",
    "InvocationContext",
    "log_context",
    "PublicApiInstrumentationConcern",
    "PublicApiLoggingConcern",
    "public_api_instrumented",
]
