"""Map arbitrary exceptions onto ``ErrorDetail`` for callers and logs."""

from __future__ import annotations

from packages.stash_shared.http.errors import (
    HttpClientError,
    HttpJsonDecodeError,
    HttpStatusError,
)

from . import codes
from .exceptions import StashError
from .types import ErrorCategory, ErrorDetail

# Checked in order; the first matching builtin type wins.
_BUILTIN_MAPPING: tuple[tuple[type[Exception], str, ErrorCategory, bool], ...] = (
    (ValueError, codes.INVALID_ARGUMENT, ErrorCategory.VALIDATION, False),
    (TimeoutError, codes.DEPENDENCY_TIMEOUT, ErrorCategory.DEPENDENCY, True),
    (ConnectionError, codes.DEPENDENCY_UNAVAILABLE, ErrorCategory.DEPENDENCY, True),
)


def exception_to_error(exc: Exception) -> ErrorDetail:
    """Return the machine-readable description of ``exc``.

    Stash errors describe themselves. Outbound HTTP failures keep their
    method, URL, status and retryability. Other exceptions fall back to a
    small builtin table, and anything unknown is an internal error.
    """
    if isinstance(exc, StashError):
        return exc.to_error()

    metadata: dict[str, str] = {"exception_type": type(exc).__name__}
    if isinstance(exc, HttpClientError):
        return _http_error(exc, metadata)

    for exc_type, code, category, retryable in _BUILTIN_MAPPING:
        if isinstance(exc, exc_type):
            return ErrorDetail(
                code=code,
                message=str(exc) or code.lower().replace("_", " "),
                category=category,
                retryable=retryable,
                metadata=metadata,
            )

    return ErrorDetail(
        code=codes.UNEXPECTED_EXCEPTION,
        message=str(exc) or "unexpected exception",
        category=ErrorCategory.INTERNAL,
        retryable=bool(getattr(exc, "retryable", False)),
        metadata=metadata,
    )


def _http_error(exc: HttpClientError, metadata: dict[str, str]) -> ErrorDetail:
    metadata.update({"method": exc.method, "url": exc.url})
    if isinstance(exc, HttpStatusError):
        metadata["status_code"] = str(exc.status_code)
        code = codes.NOT_FOUND if exc.status_code == 404 else codes.REMOTE_STATUS
        category = (
            ErrorCategory.NOT_FOUND if exc.status_code == 404 else ErrorCategory.DEPENDENCY
        )
    elif isinstance(exc, HttpJsonDecodeError):
        code, category = codes.REMOTE_INVALID_RESPONSE, ErrorCategory.DEPENDENCY
    else:
        code, category = codes.DEPENDENCY_UNAVAILABLE, ErrorCategory.DEPENDENCY
    return ErrorDetail(
        code=code,
        message=exc.message,
        category=category,
        retryable=exc.retryable,
        metadata=metadata,
    )
