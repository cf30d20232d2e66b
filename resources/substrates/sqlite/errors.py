"""SQLAlchemy exception normalization for the SQLite local store."""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from packages.stash_shared.errors import (
    StashError,
    StorageConflictError,
    StorageUnavailableError,
)


def normalize_sqlite_error(
    exc: Exception, *, collection: str = "", index: str = ""
) -> StashError:
    """Map low-level database exceptions onto the store's error taxonomy."""
    if isinstance(exc, StashError):
        return exc

    if isinstance(exc, IntegrityError):
        resolved_index = index or _violated_index(str(exc.orig))
        return StorageConflictError(
            message=f"unique index violated in {collection or 'store'}: {resolved_index}",
            collection=collection,
            index=resolved_index,
        )

    if isinstance(exc, OperationalError):
        # locked, readonly, disk full, unable to open
        return StorageUnavailableError(
            message=f"local store unavailable: {exc.orig}",
            retryable="locked" in str(exc.orig).lower(),
        )

    if isinstance(exc, DBAPIError):
        return StorageUnavailableError(message=f"local store request failed: {exc.orig}")

    if isinstance(exc, OSError):
        return StorageUnavailableError(message=f"local store path unusable: {exc}")

    return StashError(message=f"unexpected local store failure: {type(exc).__name__}")


def _violated_index(detail: str) -> str:
    """Extract the index name from ``UNIQUE constraint failed: users.ix_email``."""
    _, _, column = detail.rpartition(".")
    column = column.strip()
    return column.removeprefix("ix_")
