"""Public shared error API for Stash components."""

from . import codes
from .exceptions import (
    AccessDenied,
    DecryptionFailure,
    EncryptionFailure,
    IntegrityCheckFailure,
    NotInitializedError,
    OperationNotFound,
    RecordNotFound,
    RemoteFetchFailure,
    ReplayFailure,
    StashError,
    StorageConflictError,
    StorageUnavailableError,
)
from .normalize import exception_to_error
from .types import ErrorCategory, ErrorDetail

__all__ = [
    "AccessDenied",
    "DecryptionFailure",
    "EncryptionFailure",
    "ErrorCategory",
    "ErrorDetail",
    "IntegrityCheckFailure",
    "NotInitializedError",
    "OperationNotFound",
    "RecordNotFound",
    "RemoteFetchFailure",
    "ReplayFailure",
    "StashError",
    "StorageConflictError",
    "StorageUnavailableError",
    "codes",
    "exception_to_error",
]
