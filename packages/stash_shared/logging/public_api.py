"""Instrumentation decorator for public component methods.

Every public method of the store, security, queue and orchestrator services
is wrapped with :func:`public_api_instrumented`, which fans invocation and
completion events out to a set of concerns. Logging is the built-in concern;
hosts can add their own (metrics, tracing) without touching callsites.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from functools import wraps
from time import perf_counter
from typing import Any, Callable, Mapping, Protocol, Sequence

from packages.stash_shared.errors import exception_to_error

from . import fields
from .context import log_context


@dataclass(frozen=True)
class InvocationContext:
    """Structured metadata describing one public API invocation."""

    component_id: str
    api_name: str
    references: Mapping[str, str]


@dataclass(frozen=True)
class CompletionContext:
    """Structured metadata describing one completed public API invocation."""

    invocation: InvocationContext
    success: bool
    duration_ms: float
    errors: list[str]
    error_codes: list[str]


class PublicApiInstrumentationConcern(Protocol):
    """Hook contract for one public API instrumentation concern."""

    def on_invocation(self, context: InvocationContext) -> None:
        """Handle invocation-start event for one method call."""

    def on_completion(self, context: CompletionContext) -> None:
        """Handle completion event for one method call."""


class PublicApiLoggingConcern:
    """Logging concern implementation for invocation/completion events."""

    def __init__(self, *, logger: Any) -> None:
        self._logger = logger

    def on_invocation(self, context: InvocationContext) -> None:
        """Emit a structured invocation-start log at debug level."""
        with log_context(_invocation_log_context(context)):
            self._logger.debug("Public API invocation")

    def on_completion(self, context: CompletionContext) -> None:
        """Emit a structured completion log; failures log at warning."""
        payload = _invocation_log_context(context.invocation)
        payload.update(
            {
                fields.EVENT: fields.PUBLIC_API_COMPLETION_EVENT,
                fields.SUCCESS: context.success,
                fields.DURATION_MS: context.duration_ms,
                fields.ERRORS: context.errors,
                fields.ERROR_CODE: ",".join(context.error_codes) or None,
            }
        )
        with log_context(payload):
            if context.success:
                self._logger.info("Public API completion")
            else:
                self._logger.warning("Public API completion")


def public_api_instrumented(
    *,
    component_id: str,
    api_name: str | None = None,
    id_fields: tuple[str, ...] = (),
    concerns: Sequence[PublicApiInstrumentationConcern] | None = None,
    logger: Any | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorate one public method (sync or async) with instrumentation concerns.

    ``id_fields`` names keyword arguments whose values are copied into the
    log context as references (for example ``user_id``).
    """
    resolved_concerns: tuple[PublicApiInstrumentationConcern, ...] = tuple(
        concerns or ()
    )
    if logger is not None:
        resolved_concerns = (PublicApiLoggingConcern(logger=logger), *resolved_concerns)
    if len(resolved_concerns) == 0:
        raise ValueError("public_api_instrumented requires at least one concern")

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        method_name = api_name or func.__name__

        def start(kwargs: Mapping[str, Any]) -> InvocationContext:
            invocation = InvocationContext(
                component_id=component_id,
                api_name=method_name,
                references={
                    name: str(kwargs[name])
                    for name in id_fields
                    if kwargs.get(name) not in (None, "")
                },
            )
            _emit_invocation(resolved_concerns, invocation, logger)
            return invocation

        def finish(
            invocation: InvocationContext, started: float, exc: Exception | None
        ) -> None:
            completion = CompletionContext(
                invocation=invocation,
                success=exc is None,
                duration_ms=round((perf_counter() - started) * 1000.0, 3),
                errors=[] if exc is None else [f"{type(exc).__name__}: {exc}"],
                error_codes=[] if exc is None else [_error_code(exc)],
            )
            _emit_completion(resolved_concerns, completion, logger)

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                invocation = start(kwargs)
                started = perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as exc:
                    finish(invocation, started, exc)
                    raise
                finish(invocation, started, None)
                return result

            return async_wrapper

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            invocation = start(kwargs)
            started = perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                finish(invocation, started, exc)
                raise
            finish(invocation, started, None)
            return result

        return wrapper

    return decorator


def _error_code(exc: Exception) -> str:
    return exception_to_error(exc).code


def _invocation_log_context(context: InvocationContext) -> dict[str, object]:
    """Build common structured fields for one invocation event."""
    return {
        fields.EVENT: fields.PUBLIC_API_INVOCATION_EVENT,
        fields.COMPONENT_ID: context.component_id,
        fields.API_NAME: context.api_name,
        **context.references,
    }


def _emit_invocation(
    concerns: Sequence[PublicApiInstrumentationConcern],
    context: InvocationContext,
    logger: Any | None,
) -> None:
    """Dispatch invocation event to concerns with failure isolation."""
    for concern in concerns:
        try:
            concern.on_invocation(context)
        except Exception as exc:  # noqa: BLE001
            _log_concern_failure(logger, "invocation", concern, exc, context)


def _emit_completion(
    concerns: Sequence[PublicApiInstrumentationConcern],
    context: CompletionContext,
    logger: Any | None,
) -> None:
    """Dispatch completion event to concerns with failure isolation."""
    for concern in concerns:
        try:
            concern.on_completion(context)
        except Exception as exc:  # noqa: BLE001
            _log_concern_failure(logger, "completion", concern, exc, context.invocation)


def _log_concern_failure(
    logger: Any | None,
    stage: str,
    concern: object,
    exc: Exception,
    invocation: InvocationContext,
) -> None:
    """Best-effort warning log for instrumentation concern hook failures."""
    if logger is None:
        return
    with log_context(
        {
            fields.EVENT: fields.PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT,
            fields.COMPONENT_ID: invocation.component_id,
            fields.API_NAME: invocation.api_name,
            fields.STAGE: stage,
            fields.CONCERN: type(concern).__name__,
            fields.ERRORS: [f"{type(exc).__name__}: {exc}"],
        }
    ):
        logger.warning("Public API instrumentation concern failed")
