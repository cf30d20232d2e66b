"""Behavior tests for the sync queue service."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from packages.stash_shared.errors import OperationNotFound, ReplayFailure, codes
from resources.adapters.network import ManualReachability
from resources.substrates.sqlite import SqliteLocalStore, SqliteSettings
from services.action.sync_queue import (
    EXHAUSTED_EVENT,
    DefaultSyncQueueService,
    ExhaustedPolicy,
    OperationKind,
    OperationRequest,
    Priority,
    QueuedOperation,
    ReplayResponse,
    SyncOutcome,
    SyncQueueSettings,
)

_START = datetime(2026, 2, 1, 8, 0, tzinfo=UTC)


class _TickingClock:
    """Clock advancing one second per reading."""

    def __init__(self) -> None:
        self._current = _START

    def now(self) -> datetime:
        self._current += timedelta(seconds=1)
        return self._current


@dataclass
class _FakeTransport:
    """Replay transport recording calls and failing on selected endpoints."""

    failing_endpoints: set[str] = field(default_factory=set)
    calls: list[QueuedOperation] = field(default_factory=list)
    gate: asyncio.Event | None = None
    in_flight: int = 0
    max_in_flight: int = 0

    async def replay(self, operation: QueuedOperation) -> ReplayResponse:
        self.calls.append(operation)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if operation.endpoint in self.failing_endpoints:
                raise ReplayFailure(
                    message=f"HTTP 503 for {operation.endpoint}",
                    operation_id=operation.id,
                    method=operation.kind.http_method,
                    url=operation.endpoint,
                    status_code=503,
                )
            return ReplayResponse(status_code=200)
        finally:
            self.in_flight -= 1


@dataclass
class _FakeAudit:
    events: list[dict[str, Any]] = field(default_factory=list)

    def log_activity(self, **kwargs: Any) -> int:
        self.events.append(kwargs)
        return len(self.events)


def _queue(
    *,
    transport: _FakeTransport | None = None,
    settings: SyncQueueSettings | None = None,
    reachability: ManualReachability | None = None,
    audit: _FakeAudit | None = None,
) -> tuple[DefaultSyncQueueService, _FakeTransport]:
    store = SqliteLocalStore(settings=SqliteSettings(database_path=":memory:"))
    store.initialize()
    resolved_transport = transport or _FakeTransport()
    queue = DefaultSyncQueueService(
        settings=settings or SyncQueueSettings(),
        store=store,
        transport=resolved_transport,
        security=audit,
        reachability=reachability,
        clock=_TickingClock(),
    )
    return queue, resolved_transport


def _request(endpoint: str, **overrides: Any) -> OperationRequest:
    return OperationRequest(
        kind=overrides.pop("kind", OperationKind.UPDATE),
        endpoint=endpoint,
        payload=overrides.pop("payload", {"endpoint": endpoint}),
        **overrides,
    )


@pytest.mark.asyncio
async def test_enqueue_applies_defaults_and_persists() -> None:
    """Enqueue should assign id, arrival time and configured defaults."""
    queue, _ = _queue()

    operation = await queue.enqueue(request=_request("/profile"))

    assert len(operation.id) == 26
    assert operation.priority is Priority.NORMAL
    assert (operation.max_retries, operation.retry_delay_ms) == (3, 1000)
    assert operation.retry_count == 0
    assert [op.id for op in queue.pending_operations()] == [operation.id]
    assert queue.pending_operations()[0].payload == {"endpoint": "/profile"}


@pytest.mark.asyncio
async def test_drain_replays_by_priority_then_arrival() -> None:
    """High before Normal before Low, FIFO within each tier."""
    queue, transport = _queue()
    for endpoint, priority in [
        ("/low-t1", Priority.LOW),
        ("/high-t2", Priority.HIGH),
        ("/normal-t3", Priority.NORMAL),
        ("/high-t4", Priority.HIGH),
    ]:
        await queue.enqueue(request=_request(endpoint, priority=priority))

    report = await queue.drain()

    assert [call.endpoint for call in transport.calls] == [
        "/high-t2",
        "/high-t4",
        "/normal-t3",
        "/low-t1",
    ]
    assert report.succeeded == 4
    assert queue.pending_operations() == []


@pytest.mark.asyncio
async def test_failed_replay_keeps_operation_until_success() -> None:
    """Operations leave the queue only after an acknowledged replay."""
    transport = _FakeTransport(failing_endpoints={"/profile"})
    queue, _ = _queue(transport=transport)
    await queue.enqueue(request=_request("/profile"))
    await queue.enqueue(request=_request("/settings"))

    first = await queue.drain()

    assert first.failed == 1
    assert first.succeeded == 1
    failure = next(result for result in first.results if not result.success)
    assert failure.error_code == codes.REPLAY_FAILURE
    remaining = queue.pending_operations()
    assert [op.endpoint for op in remaining] == ["/profile"]
    assert remaining[0].retry_count == 1
    assert remaining[0].last_error == "HTTP 503 for /profile"

    transport.failing_endpoints.clear()
    second = await queue.drain()

    assert second.succeeded == 1
    assert queue.pending_operations() == []


@pytest.mark.asyncio
async def test_concurrent_drains_are_single_flight() -> None:
    """Back-to-back drains should produce one replay pass, not two."""
    transport = _FakeTransport(gate=asyncio.Event())
    queue, _ = _queue(transport=transport)
    await queue.enqueue(request=_request("/a"))
    await queue.enqueue(request=_request("/b"))

    first = asyncio.create_task(queue.drain())
    second = asyncio.create_task(queue.drain())
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    transport.gate.set()
    reports = await asyncio.gather(first, second)

    skipped = [report for report in reports if report.skipped]
    assert len(skipped) == 1
    assert skipped[0].skip_reason == "drain_in_progress"
    assert [call.endpoint for call in transport.calls] == ["/a", "/b"]
    assert transport.max_in_flight == 1


@pytest.mark.asyncio
async def test_drain_is_skipped_while_offline() -> None:
    """An unreachable network should leave the queue untouched."""
    network = ManualReachability(reachable=False)
    queue, transport = _queue(reachability=network)
    await queue.enqueue(request=_request("/profile"))

    report = await queue.drain()

    assert report.skipped is True
    assert report.skip_reason == "offline"
    assert transport.calls == []
    assert len(queue.pending_operations()) == 1


@pytest.mark.asyncio
async def test_high_priority_drain_leaves_other_tiers() -> None:
    """The reconnect flush should only touch high-priority operations."""
    queue, transport = _queue()
    await queue.enqueue(request=_request("/normal"))
    await queue.enqueue(request=_request("/urgent", priority=Priority.HIGH))

    report = await queue.drain_high_priority_only()

    assert [call.endpoint for call in transport.calls] == ["/urgent"]
    assert report.succeeded == 1
    assert [op.endpoint for op in queue.pending_operations()] == ["/normal"]


@pytest.mark.asyncio
async def test_exhausted_operation_moves_to_dead_letters_with_audit() -> None:
    """Over-budget operations should leave the queue and be audited."""
    audit = _FakeAudit()
    transport = _FakeTransport(failing_endpoints={"/profile"})
    queue, _ = _queue(transport=transport, audit=audit)
    operation = await queue.enqueue(request=_request("/profile", max_retries=1))

    await queue.drain()
    assert queue.pending_operations()[0].retry_count == 1

    report = await queue.drain()

    assert report.exhausted == 1
    assert queue.pending_operations() == []
    letters = queue.dead_letters()
    assert [letter.id for letter in letters] == [operation.id]
    assert letters[0].operation.endpoint == "/profile"
    assert letters[0].operation.retry_count == 2
    assert letters[0].operation.last_error == "HTTP 503 for /profile"
    assert [event["event_type"] for event in audit.events] == [EXHAUSTED_EVENT]
    assert audit.events[0]["details"]["operation_id"] == operation.id
    assert audit.events[0]["details"]["retry_count"] == 2
    assert audit.events[0]["details"]["max_retries"] == 1
    assert queue.stats().dead_lettered == 1


@pytest.mark.asyncio
async def test_dead_letters_can_be_requeued_or_discarded() -> None:
    """Requeue should reset the retry budget; discard should delete."""
    transport = _FakeTransport(failing_endpoints={"/a", "/b"})
    queue, _ = _queue(transport=transport)
    first = await queue.enqueue(request=_request("/a", max_retries=0))
    second = await queue.enqueue(request=_request("/b", max_retries=0))
    await queue.drain()

    requeued = queue.requeue_dead_letter(operation_id=first.id)

    assert requeued.retry_count == 0
    assert [op.id for op in queue.pending_operations()] == [first.id]
    assert queue.discard_dead_letter(operation_id=second.id) is True
    assert queue.dead_letters() == []
    with pytest.raises(OperationNotFound):
        queue.requeue_dead_letter(operation_id=second.id)


@pytest.mark.asyncio
async def test_drop_policy_removes_exhausted_operations() -> None:
    """Under the drop policy nothing is kept after exhaustion."""
    audit = _FakeAudit()
    queue, _ = _queue(
        transport=_FakeTransport(failing_endpoints={"/a"}),
        settings=SyncQueueSettings(exhausted_policy=ExhaustedPolicy.DROP),
        audit=audit,
    )
    await queue.enqueue(request=_request("/a", max_retries=0))

    report = await queue.drain()

    assert report.results[0].outcome is SyncOutcome.DROPPED
    assert queue.pending_operations() == []
    assert queue.dead_letters() == []
    assert audit.events[0]["details"]["policy"] == "drop"


@pytest.mark.asyncio
async def test_dependent_operation_waits_for_its_dependency() -> None:
    """A dependent should defer while its dependency is pending or failing."""
    transport = _FakeTransport(failing_endpoints={"/parent"})
    queue, _ = _queue(transport=transport)
    parent = await queue.enqueue(request=_request("/parent", kind=OperationKind.CREATE))
    child = await queue.enqueue(
        request=_request("/child", priority=Priority.HIGH, depends_on=(parent.id,))
    )

    first = await queue.drain()

    assert [call.endpoint for call in transport.calls] == ["/parent"]
    assert first.deferred == 1
    assert {op.id for op in queue.pending_operations()} == {parent.id, child.id}

    transport.failing_endpoints.clear()
    await queue.drain()
    await queue.drain()

    assert [call.endpoint for call in transport.calls] == ["/parent", "/parent", "/child"]
    assert queue.pending_operations() == []


@pytest.mark.asyncio
async def test_dependent_of_dead_lettered_operation_is_dead_lettered() -> None:
    """A dependency that exhausted its retries should take its dependents with it."""
    transport = _FakeTransport(failing_endpoints={"/parent"})
    queue, _ = _queue(transport=transport)
    parent = await queue.enqueue(request=_request("/parent", max_retries=0))
    child = await queue.enqueue(request=_request("/child", depends_on=(parent.id,)))

    await queue.drain()

    assert {letter.id for letter in queue.dead_letters()} == {parent.id, child.id}
    assert [call.endpoint for call in transport.calls] == ["/parent"]


@pytest.mark.asyncio
async def test_retry_propagates_errors_without_requeue_side_effects() -> None:
    """Out-of-band retry should raise and leave the operation unchanged."""
    transport = _FakeTransport(failing_endpoints={"/profile"})
    queue, _ = _queue(transport=transport)
    operation = await queue.enqueue(request=_request("/profile"))

    with pytest.raises(ReplayFailure):
        await queue.retry(operation_id=operation.id)
    assert queue.pending_operations()[0].retry_count == 0

    transport.failing_endpoints.clear()
    result = await queue.retry(operation_id=operation.id)

    assert result.success is True
    assert queue.pending_operations() == []
    with pytest.raises(OperationNotFound):
        await queue.retry(operation_id=operation.id)


@pytest.mark.asyncio
async def test_stats_and_success_rate_follow_history() -> None:
    """Stats should reflect pending tiers and recent attempt outcomes."""
    queue, _ = _queue(transport=_FakeTransport(failing_endpoints={"/bad"}))
    assert queue.success_rate() == 100.0

    await queue.enqueue(request=_request("/good"))
    await queue.enqueue(request=_request("/bad", priority=Priority.LOW))
    await queue.drain()

    stats = queue.stats()
    assert stats.total_pending == 1
    assert stats.pending_by_priority == {"high": 0, "normal": 0, "low": 1}
    assert (stats.completed, stats.failed) == (1, 1)
    assert stats.success_rate == 50.0
    assert len(queue.sync_results()) == 2
    assert [op.endpoint for op in queue.operations_by_priority(priority=Priority.LOW)] == ["/bad"]


@pytest.mark.asyncio
async def test_result_history_is_bounded() -> None:
    """Only the most recent attempts should be kept."""
    queue, _ = _queue(settings=SyncQueueSettings(result_history_limit=3))
    for index in range(5):
        await queue.enqueue(request=_request(f"/op-{index}"))

    await queue.drain()

    assert [result.endpoint for result in queue.sync_results()] == ["/op-2", "/op-3", "/op-4"]


def test_operation_request_rejects_relative_endpoints() -> None:
    """Endpoints are joined to the base URL and must be absolute paths."""
    with pytest.raises(ValueError):
        OperationRequest(kind=OperationKind.CREATE, endpoint="profile")


def test_operation_kind_maps_to_http_verbs() -> None:
    """Create, update and delete replay as POST, PUT and DELETE."""
    assert [kind.http_method for kind in OperationKind] == ["POST", "PUT", "DELETE"]
    assert [priority.rank for priority in Priority] == [0, 1, 2]
