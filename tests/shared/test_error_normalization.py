"""Tests for shared exception normalization and SQLite error mapping."""

from __future__ import annotations

import sqlite3

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from packages.stash_shared.errors import (
    AccessDenied,
    ErrorCategory,
    ReplayFailure,
    StorageConflictError,
    StorageUnavailableError,
    codes,
    exception_to_error,
)
from packages.stash_shared.http import HttpJsonDecodeError, HttpRequestError, HttpStatusError
from resources.substrates.sqlite.errors import normalize_sqlite_error


def test_stash_errors_describe_themselves() -> None:
    """Metadata should carry the exception type and error-specific fields."""
    detail = exception_to_error(
        ReplayFailure(
            message="HTTP 503",
            operation_id="op-1",
            method="PUT",
            url="/profile",
            status_code=503,
        )
    )

    assert detail.code == codes.REPLAY_FAILURE
    assert detail.category is ErrorCategory.DEPENDENCY
    assert detail.retryable is True
    assert detail.metadata == {
        "exception_type": "ReplayFailure",
        "operation_id": "op-1",
        "method": "PUT",
        "url": "/profile",
        "status_code": "503",
    }


def test_access_denied_is_a_policy_error() -> None:
    detail = AccessDenied(message="expired").to_error()

    assert detail.category is ErrorCategory.POLICY
    assert detail.retryable is False
    assert str(AccessDenied(message="expired")) == "expired"


@pytest.mark.parametrize(
    ("exc", "code", "retryable"),
    [
        (ValueError("bad"), codes.INVALID_ARGUMENT, False),
        (TimeoutError(), codes.DEPENDENCY_TIMEOUT, True),
        (ConnectionError("down"), codes.DEPENDENCY_UNAVAILABLE, True),
        (RuntimeError("boom"), codes.UNEXPECTED_EXCEPTION, False),
    ],
)
def test_builtin_exceptions_map_conservatively(
    exc: Exception, code: str, retryable: bool
) -> None:
    detail = exception_to_error(exc)

    assert detail.code == code
    assert detail.retryable is retryable
    assert detail.metadata["exception_type"] == type(exc).__name__


def test_unique_violation_maps_to_conflict_with_index_name() -> None:
    """SQLite unique failures should name the collection and index."""
    error = IntegrityError(
        "INSERT INTO users ...",
        {},
        sqlite3.IntegrityError("UNIQUE constraint failed: users.ix_email"),
    )

    normalized = normalize_sqlite_error(error, collection="users")

    assert isinstance(normalized, StorageConflictError)
    assert normalized.collection == "users"
    assert normalized.index == "email"


@pytest.mark.parametrize(
    ("error", "retryable"),
    [
        (OperationalError("SELECT 1", {}, sqlite3.OperationalError("database is locked")), True),
        (OperationalError("SELECT 1", {}, sqlite3.OperationalError("disk I/O error")), False),
        (PermissionError("read-only file system"), False),
    ],
)
def test_operational_failures_map_to_storage_unavailable(
    error: Exception, retryable: bool
) -> None:
    """Only lock contention is worth retrying."""
    normalized = normalize_sqlite_error(error)

    assert isinstance(normalized, StorageUnavailableError)
    assert normalized.retryable is retryable


@pytest.mark.parametrize(
    ("exc", "code", "category", "retryable"),
    [
        (
            HttpStatusError(
                message="PUT /profile returned HTTP 503",
                method="PUT",
                url="https://api.example.test/profile",
                retryable=True,
                status_code=503,
            ),
            codes.REMOTE_STATUS,
            ErrorCategory.DEPENDENCY,
            True,
        ),
        (
            HttpStatusError(
                message="GET /users/u-9 returned HTTP 404",
                method="GET",
                url="https://api.example.test/users/u-9",
                status_code=404,
            ),
            codes.NOT_FOUND,
            ErrorCategory.NOT_FOUND,
            False,
        ),
        (
            HttpRequestError(
                message="GET failed", method="GET", url="https://api.example.test", retryable=True
            ),
            codes.DEPENDENCY_UNAVAILABLE,
            ErrorCategory.DEPENDENCY,
            True,
        ),
        (
            HttpJsonDecodeError(
                message="invalid JSON", method="GET", url="https://api.example.test"
            ),
            codes.REMOTE_INVALID_RESPONSE,
            ErrorCategory.DEPENDENCY,
            False,
        ),
    ],
)
def test_http_client_errors_keep_request_metadata(
    exc: Exception, code: str, category: ErrorCategory, retryable: bool
) -> None:
    detail = exception_to_error(exc)

    assert detail.code == code
    assert detail.category is category
    assert detail.retryable is retryable
    assert detail.metadata["method"] == exc.method
    assert detail.metadata["url"] == exc.url
