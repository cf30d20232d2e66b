"""Canonical logging field names shared by every Stash component."""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EVENT = "event"

SERVICE = "service"
ENVIRONMENT = "environment"

# Public API invocation fields.
COMPONENT_ID = "component_id"
API_NAME = "api_name"
PUBLIC_API_INVOCATION_EVENT = "public_api_invocation"
PUBLIC_API_COMPLETION_EVENT = "public_api_completion"
PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT = "public_api_instrumentation_failure"
SUCCESS = "success"
DURATION_MS = "duration_ms"
ERRORS = "errors"
ERROR_CODE = "error_code"
STAGE = "stage"
CONCERN = "concern"

# Domain correlation fields.
USER_ID = "user_id"
OPERATION_ID = "operation_id"
PRIORITY = "priority"
RETRY_COUNT = "retry_count"
COLLECTION = "collection"
DRAIN_SCOPE = "drain_scope"
