"""Domain contracts for queued operations and replay outcomes."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator


class OperationKind(StrEnum):
    """Mutation kind; selects the HTTP verb used for replay."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def http_method(self) -> str:
        return _HTTP_METHODS[self]


_HTTP_METHODS = {
    OperationKind.CREATE: "POST",
    OperationKind.UPDATE: "PUT",
    OperationKind.DELETE: "DELETE",
}


class Priority(StrEnum):
    """Replay tier; lower rank replays first."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANKS[self]


_PRIORITY_RANKS = {Priority.HIGH: 0, Priority.NORMAL: 1, Priority.LOW: 2}


class OperationRequest(BaseModel):
    """Caller-supplied description of one offline mutation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: OperationKind
    endpoint: str
    payload: JsonValue = None
    priority: Priority = Priority.NORMAL
    max_retries: int | None = Field(default=None, ge=0)
    retry_delay_ms: int | None = Field(default=None, ge=0)
    depends_on: tuple[str, ...] = ()

    @field_validator("endpoint")
    @classmethod
    def _validate_endpoint(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized.startswith("/"):
            raise ValueError("endpoint must be an absolute path such as '/profile'")
        return normalized


class QueuedOperation(BaseModel):
    """One durable pending mutation."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    kind: OperationKind
    endpoint: str
    payload: JsonValue = None
    enqueued_at: datetime
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(ge=0)
    retry_delay_ms: int = Field(ge=0)
    priority: Priority = Priority.NORMAL
    depends_on: tuple[str, ...] = ()
    last_error: str | None = None
    last_attempt_at: datetime | None = None

    @property
    def sort_key(self) -> tuple[int, datetime, str]:
        """Replay order: priority tier, then arrival, then id."""
        return (self.priority.rank, self.enqueued_at, self.id)


class SyncOutcome(StrEnum):
    """What one drain did with one operation."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DEFERRED = "deferred"
    DEAD_LETTERED = "dead_lettered"
    DROPPED = "dropped"


class SyncResult(BaseModel):
    """Outcome of handling one operation during a drain or retry."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    operation_id: str
    kind: OperationKind
    endpoint: str
    priority: Priority
    outcome: SyncOutcome
    attempted_at: datetime
    replayed: bool = False
    duration_ms: float = 0.0
    error: str | None = None
    error_code: str | None = None
    status_code: int | None = None

    @property
    def success(self) -> bool:
        return self.outcome is SyncOutcome.SUCCEEDED


class DrainScope(StrEnum):
    """Subset of the queue considered by one drain."""

    ALL = "all"
    HIGH_PRIORITY = "high_priority"


class DrainReport(BaseModel):
    """Summary of one drain pass."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    scope: DrainScope
    skipped: bool = False
    skip_reason: str | None = None
    results: tuple[SyncResult, ...] = ()

    def _count(self, outcome: SyncOutcome) -> int:
        return sum(1 for result in self.results if result.outcome is outcome)

    @property
    def succeeded(self) -> int:
        return self._count(SyncOutcome.SUCCEEDED)

    @property
    def failed(self) -> int:
        return self._count(SyncOutcome.FAILED)

    @property
    def deferred(self) -> int:
        return self._count(SyncOutcome.DEFERRED)

    @property
    def exhausted(self) -> int:
        return self._count(SyncOutcome.DEAD_LETTERED) + self._count(SyncOutcome.DROPPED)


class DeadLetter(BaseModel):
    """Operation moved out of the active queue after exhausting retries."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    operation: QueuedOperation
    dead_lettered_at: datetime
    reason: str


class QueueStats(BaseModel):
    """Queue depth and replay history aggregates."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    total_pending: int
    pending_by_priority: dict[str, int]
    completed: int
    failed: int
    dead_lettered: int
    average_processing_ms: float
    success_rate: float


class ReplayResponse(BaseModel):
    """Remote acknowledgement of one replayed operation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status_code: int
    body: JsonValue = None
