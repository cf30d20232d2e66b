"""Exception hierarchy raised by Stash components.

Each exception maps onto one ``ErrorDetail`` through ``to_error`` so callers
can report failures without inspecting exception types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from . import codes
from .types import ErrorCategory, ErrorDetail


@dataclass(eq=False)
class StashError(Exception):
    """Base error type for every failure raised by Stash components."""

    message: str
    retryable: bool = False

    code: ClassVar[str] = codes.INTERNAL_ERROR
    category: ClassVar[ErrorCategory] = ErrorCategory.INTERNAL

    def __str__(self) -> str:
        """Return the human-readable error message."""
        return self.message

    def to_error(self) -> ErrorDetail:
        """Convert this exception into a serializable ``ErrorDetail``."""
        return ErrorDetail(
            code=self.code,
            message=self.message,
            category=self.category,
            retryable=self.retryable,
            metadata={"exception_type": type(self).__name__, **self._metadata()},
        )

    def _metadata(self) -> dict[str, str]:
        return {}


@dataclass(eq=False)
class NotInitializedError(StashError):
    """Local store used before ``initialize`` (programmer error)."""

    code: ClassVar[str] = codes.NOT_INITIALIZED
    category: ClassVar[ErrorCategory] = ErrorCategory.INTERNAL


@dataclass(eq=False)
class StorageUnavailableError(StashError):
    """Platform denied storage access, quota exhausted or database unusable."""

    code: ClassVar[str] = codes.STORAGE_UNAVAILABLE
    category: ClassVar[ErrorCategory] = ErrorCategory.DEPENDENCY


@dataclass(eq=False)
class StorageConflictError(StashError):
    """A write violated a unique secondary index."""

    collection: str = ""
    index: str = ""

    code: ClassVar[str] = codes.UNIQUE_INDEX_VIOLATION
    category: ClassVar[ErrorCategory] = ErrorCategory.CONFLICT

    def _metadata(self) -> dict[str, str]:
        return {"collection": self.collection, "index": self.index}


@dataclass(eq=False)
class EncryptionFailure(StashError):
    """Payload could not be encrypted (no key material, unserializable data)."""

    code: ClassVar[str] = codes.ENCRYPTION_FAILURE
    category: ClassVar[ErrorCategory] = ErrorCategory.INTEGRITY


@dataclass(eq=False)
class DecryptionFailure(StashError):
    """Ciphertext is malformed, tampered, or sealed with a different key."""

    code: ClassVar[str] = codes.DECRYPTION_FAILURE
    category: ClassVar[ErrorCategory] = ErrorCategory.INTEGRITY


@dataclass(eq=False)
class IntegrityCheckFailure(StashError):
    """A cached blob does not have the expected structure."""

    code: ClassVar[str] = codes.INTEGRITY_CHECK_FAILURE
    category: ClassVar[ErrorCategory] = ErrorCategory.INTEGRITY


@dataclass(eq=False)
class AccessDenied(StashError):
    """Offline access precondition is not met."""

    code: ClassVar[str] = codes.ACCESS_DENIED
    category: ClassVar[ErrorCategory] = ErrorCategory.POLICY


@dataclass(eq=False)
class ReplayFailure(StashError):
    """Replaying a queued operation against the remote API failed."""

    retryable: bool = True
    operation_id: str = ""
    method: str = ""
    url: str = ""
    status_code: int | None = None

    code: ClassVar[str] = codes.REPLAY_FAILURE
    category: ClassVar[ErrorCategory] = ErrorCategory.DEPENDENCY

    def _metadata(self) -> dict[str, str]:
        metadata = {
            "operation_id": self.operation_id,
            "method": self.method,
            "url": self.url,
        }
        if self.status_code is not None:
            metadata["status_code"] = str(self.status_code)
        return metadata


@dataclass(eq=False)
class OperationNotFound(StashError):
    """No queued operation exists for the requested id."""

    operation_id: str = ""

    code: ClassVar[str] = codes.OPERATION_NOT_FOUND
    category: ClassVar[ErrorCategory] = ErrorCategory.NOT_FOUND


@dataclass(eq=False)
class RecordNotFound(StashError):
    """No cached user record exists for the requested user id."""

    user_id: str = ""

    code: ClassVar[str] = codes.RECORD_NOT_FOUND
    category: ClassVar[ErrorCategory] = ErrorCategory.NOT_FOUND


@dataclass(eq=False)
class RemoteFetchFailure(StashError):
    """Fetching current user data from the remote source failed."""

    retryable: bool = True
    user_id: str = ""

    code: ClassVar[str] = codes.REMOTE_FETCH_FAILURE
    category: ClassVar[ErrorCategory] = ErrorCategory.DEPENDENCY
