"""Concrete sync queue service implementation."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Iterable
from datetime import datetime
from time import perf_counter

from packages.stash_shared.clock import Clock, SystemClock
from packages.stash_shared.errors import OperationNotFound, ReplayFailure, exception_to_error
from packages.stash_shared.ids import new_id
from packages.stash_shared.logging import (
    fields,
    get_logger,
    log_context,
    public_api_instrumented,
)
from resources.adapters.network import ReachabilitySource
from resources.substrates.sqlite import DEAD_LETTERS, PENDING_OPERATIONS, LocalStore
from services.action.sync_queue.component import SERVICE_COMPONENT_ID
from services.action.sync_queue.config import ExhaustedPolicy, SyncQueueSettings
from services.action.sync_queue.domain import (
    DeadLetter,
    DrainReport,
    DrainScope,
    OperationRequest,
    Priority,
    QueuedOperation,
    QueueStats,
    SyncOutcome,
    SyncResult,
)
from services.action.sync_queue.replay import ReplayTransport
from services.action.sync_queue.service import SyncQueueService
from services.state.offline_security import OfflineSecurityService

_LOGGER = get_logger(__name__)

EXHAUSTED_EVENT = "sync_operation_exhausted"


class DefaultSyncQueueService(SyncQueueService):
    """Sync queue persisted in the local store with single-flight draining.

    One ``asyncio.Lock`` guards every replay path. Drains that find it held
    return a skipped report immediately; ``retry`` waits for it.
    """

    def __init__(
        self,
        *,
        settings: SyncQueueSettings,
        store: LocalStore,
        transport: ReplayTransport,
        security: OfflineSecurityService | None = None,
        reachability: ReachabilitySource | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._transport = transport
        self._security = security
        self._reachability = reachability
        self._clock = clock or SystemClock()
        self._guard = asyncio.Lock()
        self._history: deque[SyncResult] = deque(maxlen=settings.result_history_limit)

    @property
    def draining(self) -> bool:
        return self._guard.locked()

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    async def enqueue(self, *, request: OperationRequest) -> QueuedOperation:
        """Persist one mutation with configured retry defaults."""
        operation = QueuedOperation(
            id=new_id(),
            kind=request.kind,
            endpoint=request.endpoint,
            payload=request.payload,
            enqueued_at=self._clock.now(),
            max_retries=(
                self._settings.default_max_retries
                if request.max_retries is None
                else request.max_retries
            ),
            retry_delay_ms=(
                self._settings.default_retry_delay_ms
                if request.retry_delay_ms is None
                else request.retry_delay_ms
            ),
            priority=request.priority,
            depends_on=request.depends_on,
        )
        self._store.put(PENDING_OPERATIONS.name, _document(operation))
        with log_context(
            {
                fields.OPERATION_ID: operation.id,
                fields.PRIORITY: operation.priority.value,
                "endpoint": operation.endpoint,
            }
        ):
            _LOGGER.info("Operation queued")
        return operation

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    async def drain(self) -> DrainReport:
        """Replay every pending operation once, in priority then FIFO order."""
        return await self._drain(DrainScope.ALL)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    async def drain_high_priority_only(self) -> DrainReport:
        """Replay pending high-priority operations only."""
        return await self._drain(DrainScope.HIGH_PRIORITY)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("operation_id",)
    )
    async def retry(self, *, operation_id: str) -> SyncResult:
        """Replay one operation now, leaving it queued if the replay fails.

        Raises ``OperationNotFound`` for unknown ids and re-raises the replay
        error instead of counting it against the retry budget.
        """
        async with self._guard:
            document = self._store.get(PENDING_OPERATIONS.name, operation_id)
            if document is None:
                raise OperationNotFound(
                    message=f"no queued operation {operation_id!r}",
                    operation_id=operation_id,
                )
            operation = QueuedOperation.model_validate(document)
            attempted_at = self._clock.now()
            started = perf_counter()
            try:
                await self._transport.replay(operation)
            except Exception as exc:
                self._remember(
                    _result(
                        operation,
                        SyncOutcome.FAILED,
                        attempted_at,
                        started=started,
                        error=exc,
                    )
                )
                raise
            self._store.delete(PENDING_OPERATIONS.name, operation.id)
            return self._remember(
                _result(operation, SyncOutcome.SUCCEEDED, attempted_at, started=started)
            )

    def pending_operations(self) -> list[QueuedOperation]:
        """Return active operations in replay order."""
        return _ordered(
            QueuedOperation.model_validate(document)
            for document in self._store.get_all(PENDING_OPERATIONS.name)
        )

    def operations_by_priority(self, *, priority: Priority) -> list[QueuedOperation]:
        """Return active operations of one priority in FIFO order."""
        return _ordered(
            QueuedOperation.model_validate(document)
            for document in self._store.get_by_index(
                PENDING_OPERATIONS.name, "priority", priority.value
            )
        )

    def dead_letters(self) -> list[DeadLetter]:
        """Return dead letters, oldest first."""
        letters = [
            DeadLetter.model_validate(document)
            for document in self._store.get_all(DEAD_LETTERS.name)
        ]
        return sorted(letters, key=lambda letter: (letter.dead_lettered_at, letter.id))

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("operation_id",)
    )
    def requeue_dead_letter(self, *, operation_id: str) -> QueuedOperation:
        """Return one dead letter to the queue with a reset retry count."""
        document = self._store.get(DEAD_LETTERS.name, operation_id)
        if document is None:
            raise OperationNotFound(
                message=f"no dead-lettered operation {operation_id!r}",
                operation_id=operation_id,
            )
        letter = DeadLetter.model_validate(document)
        operation = letter.operation.model_copy(
            update={
                "retry_count": 0,
                "enqueued_at": self._clock.now(),
                "last_error": None,
            }
        )
        self._store.put(PENDING_OPERATIONS.name, _document(operation))
        self._store.delete(DEAD_LETTERS.name, operation_id)
        return operation

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("operation_id",)
    )
    def discard_dead_letter(self, *, operation_id: str) -> bool:
        """Delete one dead letter permanently."""
        return self._store.delete(DEAD_LETTERS.name, operation_id)

    def sync_results(self) -> list[SyncResult]:
        """Return recent replay attempts, oldest first."""
        return list(self._history)

    def success_rate(self) -> float:
        """Return successful attempts as a percentage; 100.0 with no history."""
        if len(self._history) == 0:
            return 100.0
        succeeded = sum(1 for result in self._history if result.success)
        return round(succeeded * 100.0 / len(self._history), 2)

    def stats(self) -> QueueStats:
        """Return pending counts per priority and history aggregates."""
        pending = self.pending_operations()
        by_priority = {priority.value: 0 for priority in Priority}
        for operation in pending:
            by_priority[operation.priority.value] += 1

        history = list(self._history)
        completed = sum(1 for result in history if result.success)
        average = (
            round(sum(result.duration_ms for result in history) / len(history), 3)
            if history
            else 0.0
        )
        return QueueStats(
            total_pending=len(pending),
            pending_by_priority=by_priority,
            completed=completed,
            failed=len(history) - completed,
            dead_lettered=len(self._store.get_all(DEAD_LETTERS.name)),
            average_processing_ms=average,
            success_rate=self.success_rate(),
        )

    async def _drain(self, scope: DrainScope) -> DrainReport:
        if self._guard.locked():
            return DrainReport(scope=scope, skipped=True, skip_reason="drain_in_progress")
        if self._reachability is not None and not self._reachability.is_reachable():
            return DrainReport(scope=scope, skipped=True, skip_reason="offline")

        async with self._guard:
            with log_context({fields.DRAIN_SCOPE: scope.value}):
                results = await self._drain_pass(scope)
                report = DrainReport(scope=scope, results=tuple(results))
                if results:
                    with log_context(
                        {
                            "succeeded": report.succeeded,
                            "failed": report.failed,
                            "deferred": report.deferred,
                            "exhausted": report.exhausted,
                        }
                    ):
                        _LOGGER.info("Drain pass finished")
                return report

    async def _drain_pass(self, scope: DrainScope) -> list[SyncResult]:
        queued = self.pending_operations()
        pending_ids = {operation.id for operation in queued}
        dead_ids = {
            str(document["id"]) for document in self._store.get_all(DEAD_LETTERS.name)
        }
        failed_ids: set[str] = set()

        if scope is DrainScope.HIGH_PRIORITY:
            queued = [op for op in queued if op.priority is Priority.HIGH]

        results: list[SyncResult] = []
        for operation in queued:
            attempted_at = self._clock.now()
            with log_context({fields.OPERATION_ID: operation.id}):
                exhausted_dependency = next(
                    (dep for dep in operation.depends_on if dep in dead_ids), None
                )
                if exhausted_dependency is not None:
                    outcome = self._exhaust(
                        operation,
                        reason=f"dependency {exhausted_dependency} exhausted its retries",
                    )
                    pending_ids.discard(operation.id)
                    dead_ids.add(operation.id)
                    results.append(
                        _result(operation, outcome, attempted_at, error_text="dependency exhausted")
                    )
                    continue

                if any(dep in pending_ids or dep in failed_ids for dep in operation.depends_on):
                    results.append(_result(operation, SyncOutcome.DEFERRED, attempted_at))
                    continue

                started = perf_counter()
                try:
                    await self._transport.replay(operation)
                except Exception as exc:  # noqa: BLE001
                    failed_ids.add(operation.id)
                    outcome = self._record_failure(operation, exc, attempted_at)
                    if outcome is not SyncOutcome.FAILED:
                        pending_ids.discard(operation.id)
                        dead_ids.add(operation.id)
                    results.append(
                        self._remember(
                            _result(operation, outcome, attempted_at, started=started, error=exc)
                        )
                    )
                    continue

                self._store.delete(PENDING_OPERATIONS.name, operation.id)
                pending_ids.discard(operation.id)
                results.append(
                    self._remember(
                        _result(operation, SyncOutcome.SUCCEEDED, attempted_at, started=started)
                    )
                )
        return results

    def _record_failure(
        self, operation: QueuedOperation, exc: Exception, attempted_at: datetime
    ) -> SyncOutcome:
        """Count one failed replay; move the operation out once over budget."""
        retry_count = operation.retry_count + 1
        with log_context(
            {
                fields.RETRY_COUNT: retry_count,
                fields.ERRORS: [f"{type(exc).__name__}: {exc}"],
            }
        ):
            _LOGGER.warning("Operation replay failed")

        updated = operation.model_copy(
            update={
                "retry_count": retry_count,
                "last_error": str(exc),
                "last_attempt_at": attempted_at,
            }
        )
        if retry_count > operation.max_retries:
            return self._exhaust(updated, reason=f"retries exhausted: {exc}")
        self._store.put(PENDING_OPERATIONS.name, _document(updated))
        return SyncOutcome.FAILED

    def _exhaust(self, operation: QueuedOperation, *, reason: str) -> SyncOutcome:
        """Remove one operation from the active queue per the exhausted policy."""
        policy = self._settings.exhausted_policy
        if policy is ExhaustedPolicy.DEAD_LETTER:
            letter = DeadLetter(
                id=operation.id,
                operation=operation,
                dead_lettered_at=self._clock.now(),
                reason=reason,
            )
            self._store.put(DEAD_LETTERS.name, letter.model_dump(mode="json"))
            outcome = SyncOutcome.DEAD_LETTERED
        else:
            outcome = SyncOutcome.DROPPED
        self._store.delete(PENDING_OPERATIONS.name, operation.id)

        if self._security is not None:
            self._security.log_activity(
                event_type=EXHAUSTED_EVENT,
                details={
                    "operation_id": operation.id,
                    "kind": operation.kind.value,
                    "endpoint": operation.endpoint,
                    "retry_count": operation.retry_count,
                    "max_retries": operation.max_retries,
                    "policy": policy.value,
                    "reason": reason,
                },
            )
        with log_context({"policy": policy.value, "reason": reason}):
            _LOGGER.warning("Operation left the active queue")
        return outcome

    def _remember(self, result: SyncResult) -> SyncResult:
        self._history.append(result)
        return result


def _document(operation: QueuedOperation) -> dict[str, object]:
    return operation.model_dump(mode="json")


def _ordered(operations: Iterable[QueuedOperation]) -> list[QueuedOperation]:
    return sorted(operations, key=lambda operation: operation.sort_key)


def _result(
    operation: QueuedOperation,
    outcome: SyncOutcome,
    attempted_at: datetime,
    *,
    started: float | None = None,
    error: Exception | None = None,
    error_text: str | None = None,
) -> SyncResult:
    status_code = error.status_code if isinstance(error, ReplayFailure) else None
    error_code = None if error is None else exception_to_error(error).code
    return SyncResult(
        operation_id=operation.id,
        kind=operation.kind,
        endpoint=operation.endpoint,
        priority=operation.priority,
        outcome=outcome,
        attempted_at=attempted_at,
        replayed=started is not None,
        duration_ms=0.0 if started is None else round((perf_counter() - started) * 1000.0, 3),
        error=error_text if error is None else str(error),
        error_code=error_code,
        status_code=status_code,
    )
