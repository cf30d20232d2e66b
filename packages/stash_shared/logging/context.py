"""Structured logging context carried across ``await`` points.

Fields bound here are attached to every record emitted by the current task,
so a drain pass or a sync call can tag its log lines once (operation id,
user id, component) instead of repeating them at each callsite. Each asyncio
task starts with a copy of its parent's context, which keeps concurrent
drains and syncs from leaking fields into each other.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Mapping

_LOG_CONTEXT: ContextVar[dict[str, object]] = ContextVar(
    "stash_log_context", default={}
)

_SCALARS = (str, int, float, bool)


def get_context() -> dict[str, object]:
    """Return a shallow copy of the current logging context."""
    return dict(_LOG_CONTEXT.get())


def bind_context(**values: object) -> None:
    """Bind non-empty values into the current logging context.

    Scalars keep their JSON type; anything else is stringified. ``None``
    values are ignored.
    """
    if not values:
        return
    current = _LOG_CONTEXT.get().copy()
    for key, value in values.items():
        if value is None:
            continue
        current[str(key)] = value if isinstance(value, _SCALARS) else str(value)
    _LOG_CONTEXT.set(current)


def clear_context(*keys: str) -> None:
    """Clear selected keys or the entire logging context."""
    if not keys:
        _LOG_CONTEXT.set({})
        return
    current = _LOG_CONTEXT.get().copy()
    for key in keys:
        current.pop(key, None)
    _LOG_CONTEXT.set(current)


@contextmanager
def log_context(values: Mapping[str, object]) -> Iterator[None]:
    """Temporarily bind logging context for the duration of a block."""
    token = _LOG_CONTEXT.set(_LOG_CONTEXT.get().copy())
    try:
        bind_context(**dict(values))
        yield
    finally:
        _LOG_CONTEXT.reset(token)
