"""Stdout logging setup for the offline data layer.

The host application calls :func:`configure_logging` once at startup (or
``stash_core.configure_runtime_logging`` with loaded settings). Records are
written as JSON lines by default, or as plain text with ``key=value`` context
appended, and always carry the fields bound through :mod:`.context`.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from . import fields
from .context import bind_context, get_context

# Per-request INFO lines from these libraries would drown out queue logs.
_LIBRARY_LEVELS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


class ContextFilter(logging.Filter):
    """Copy the current structured context onto each record as ``context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = get_context()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, UTC)
        payload: dict[str, Any] = {
            fields.TIMESTAMP: created.isoformat(timespec="milliseconds"),
            fields.LEVEL: record.levelname,
            fields.LOGGER: record.name,
            fields.MESSAGE: record.getMessage(),
        }
        context = getattr(record, "context", None)
        if isinstance(context, dict):
            payload.update(context)
        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_type"] = record.exc_info[0].__name__
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


class PlainFormatter(logging.Formatter):
    """Single-line text output for terminals, context appended sorted by key."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if not context or not isinstance(context, dict):
            return line
        pairs = (f"{key}={_plain_value(value)}" for key, value in sorted(context.items()))
        return f"{line} {' '.join(pairs)}"


def _plain_value(value: object) -> str:
    text = str(value)
    return repr(text) if " " in text or text == "" else text


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = True,
    service: str | None = None,
    environment: str | None = None,
    quiet_libraries: bool = True,
) -> None:
    """Install one stdout handler on the root logger.

    Existing root handlers are removed, so repeated calls reconfigure rather
    than duplicate output. ``service`` and ``environment`` are bound into the
    logging context of the calling task.
    """
    resolved = level.upper()
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(resolved)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter() if json_output else PlainFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(resolved)

    if quiet_libraries:
        for name, library_level in _LIBRARY_LEVELS.items():
            logging.getLogger(name).setLevel(max(library_level, root.level))

    bind_context(**{fields.SERVICE: service, fields.ENVIRONMENT: environment})


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name)
