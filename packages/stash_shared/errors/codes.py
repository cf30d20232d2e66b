"""Stable machine-readable error codes."""

# Validation
VALIDATION_ERROR = "VALIDATION_ERROR"
INVALID_ARGUMENT = "INVALID_ARGUMENT"

# Not found
NOT_FOUND = "NOT_FOUND"
RECORD_NOT_FOUND = "RECORD_NOT_FOUND"
OPERATION_NOT_FOUND = "OPERATION_NOT_FOUND"

# Conflict
CONFLICT = "CONFLICT"
UNIQUE_INDEX_VIOLATION = "UNIQUE_INDEX_VIOLATION"

# Policy / authorization
ACCESS_DENIED = "ACCESS_DENIED"

# Storage
NOT_INITIALIZED = "NOT_INITIALIZED"
STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"

# Crypto / integrity
ENCRYPTION_FAILURE = "ENCRYPTION_FAILURE"
DECRYPTION_FAILURE = "DECRYPTION_FAILURE"
INTEGRITY_CHECK_FAILURE = "INTEGRITY_CHECK_FAILURE"

# Dependency / remote
REPLAY_FAILURE = "REPLAY_FAILURE"
REMOTE_FETCH_FAILURE = "REMOTE_FETCH_FAILURE"
DEPENDENCY_TIMEOUT = "DEPENDENCY_TIMEOUT"
DEPENDENCY_UNAVAILABLE = "DEPENDENCY_UNAVAILABLE"
REMOTE_STATUS = "REMOTE_STATUS"
REMOTE_INVALID_RESPONSE = "REMOTE_INVALID_RESPONSE"

# Internal
INTERNAL_ERROR = "INTERNAL_ERROR"
UNEXPECTED_EXCEPTION = "UNEXPECTED_EXCEPTION"
