"""Tests for HTTP replay and reachability/timer triggers."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Awaitable, Callable

import httpx
import pytest

from packages.stash_shared.errors import ReplayFailure
from packages.stash_shared.http import AsyncHttpClient
from resources.adapters.flags import LAST_FLUSH_ATTEMPT_AT, OFFLINE_STARTED_AT, InMemoryFlagStore
from resources.adapters.network import ManualReachability
from resources.adapters.session import StaticCredentialProvider
from resources.substrates.sqlite import SqliteLocalStore, SqliteSettings
from services.action.sync_queue import (
    DefaultSyncQueueService,
    HttpReplayTransport,
    OperationKind,
    OperationRequest,
    Priority,
    QueuedOperation,
    SyncQueueSettings,
    SyncTriggers,
)

_NOW = datetime(2026, 7, 1, 10, 0, tzinfo=UTC)


class _Clock:
    def now(self) -> datetime:
        return _NOW


@dataclass
class _FakeJob:
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class _FakeScheduler:
    """Scheduler fake exposing registered callbacks for manual ticking."""

    jobs: list[tuple[float, Callable[[], Awaitable[None]], _FakeJob]] = field(
        default_factory=list
    )

    def every(self, interval_seconds: float, callback: Callable[[], Awaitable[None]]) -> _FakeJob:
        job = _FakeJob()
        self.jobs.append((interval_seconds, callback, job))
        return job


def _operation(kind: OperationKind, payload: object = None) -> QueuedOperation:
    return QueuedOperation(
        id="01J000000000000000000000AA",
        kind=kind,
        endpoint="/profile",
        payload=payload,
        enqueued_at=_NOW,
        max_retries=3,
        retry_delay_ms=1000,
    )


def _wire(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    reachable: bool = True,
) -> tuple[DefaultSyncQueueService, ManualReachability, AsyncHttpClient]:
    client = AsyncHttpClient(
        base_url="https://api.example.test/api",
        transport=httpx.MockTransport(handler),
    )
    store = SqliteLocalStore(settings=SqliteSettings(database_path=":memory:"))
    store.initialize()
    network = ManualReachability(reachable=reachable)
    queue = DefaultSyncQueueService(
        settings=SyncQueueSettings(),
        store=store,
        transport=HttpReplayTransport(
            client=client,
            credentials=StaticCredentialProvider(access_token="token-123"),
        ),
        reachability=network,
        clock=_Clock(),
    )
    return queue, network, client


@pytest.mark.asyncio
async def test_http_replay_maps_kind_to_verb_with_bearer_and_json_body() -> None:
    """Replay should send the payload as JSON with the bearer credential."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True}, request=request)

    client = AsyncHttpClient(
        base_url="https://api.example.test/api",
        transport=httpx.MockTransport(handler),
    )
    transport = HttpReplayTransport(
        client=client, credentials=StaticCredentialProvider(access_token="token-123")
    )
    try:
        for kind in OperationKind:
            response = await transport.replay(_operation(kind, {"bio": "x"}))
            assert response.status_code == 200
            assert response.body == {"ok": True}
    finally:
        await client.aclose()

    assert [request.method for request in seen] == ["POST", "PUT", "DELETE"]
    assert {str(request.url) for request in seen} == {"https://api.example.test/api/profile"}
    assert all(request.headers["Authorization"] == "Bearer token-123" for request in seen)
    assert all(json.loads(request.content) == {"bio": "x"} for request in seen)


@pytest.mark.asyncio
async def test_http_replay_omits_authorization_without_credential() -> None:
    """Signed-out replays should not send an empty bearer header."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204, request=request)

    client = AsyncHttpClient(
        base_url="https://api.example.test", transport=httpx.MockTransport(handler)
    )
    transport = HttpReplayTransport(client=client, credentials=StaticCredentialProvider())
    try:
        response = await transport.replay(_operation(OperationKind.DELETE))
    finally:
        await client.aclose()

    assert response.status_code == 204
    assert "Authorization" not in seen[0].headers


@pytest.mark.asyncio
async def test_http_replay_wraps_status_and_transport_errors() -> None:
    """Server and transport errors should surface as ReplayFailure."""

    def failing(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="busy", request=request)

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    for handler, status_code in ((failing, 503), (unreachable, None)):
        client = AsyncHttpClient(
            base_url="https://api.example.test", transport=httpx.MockTransport(handler)
        )
        transport = HttpReplayTransport(
            client=client, credentials=StaticCredentialProvider(access_token="t")
        )
        try:
            with pytest.raises(ReplayFailure) as exc_info:
                await transport.replay(_operation(OperationKind.UPDATE, {"bio": "x"}))
        finally:
            await client.aclose()

        error = exc_info.value
        assert error.method == "PUT"
        assert error.status_code == status_code
        assert error.retryable is True
        assert error.operation_id == "01J000000000000000000000AA"


@pytest.mark.asyncio
async def test_reconnect_replays_offline_update_exactly_once() -> None:
    """An update queued offline should be PUT once on reconnect, then removed."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"bio": "x"}, request=request)

    queue, network, client = _wire(handler, reachable=False)
    flags = InMemoryFlagStore()
    triggers = SyncTriggers(
        queue=queue,
        reachability=network,
        scheduler=_FakeScheduler(),
        interval_seconds=300,
        flags=flags,
        clock=_Clock(),
    )
    triggers.start()
    try:
        await queue.enqueue(
            request=OperationRequest(
                kind=OperationKind.UPDATE,
                endpoint="/profile",
                payload={"bio": "x"},
                priority=Priority.NORMAL,
            )
        )
        assert (await queue.drain()).skipped is True

        await network.set_reachable(True)
    finally:
        triggers.stop()
        await client.aclose()

    assert [(request.method, request.url.path) for request in seen] == [("PUT", "/api/profile")]
    assert json.loads(seen[0].content) == {"bio": "x"}
    assert queue.pending_operations() == []
    assert flags.get(LAST_FLUSH_ATTEMPT_AT) == "2026-07-01T10:00:00Z"


@pytest.mark.asyncio
async def test_reconnect_flushes_high_priority_before_the_rest() -> None:
    """The reconnect sequence should replay high priority first."""
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, request=request)

    queue, network, client = _wire(handler, reachable=False)
    triggers = SyncTriggers(
        queue=queue, reachability=network, scheduler=_FakeScheduler(), interval_seconds=300
    )
    triggers.start()
    try:
        await queue.enqueue(
            request=OperationRequest(kind=OperationKind.CREATE, endpoint="/notes")
        )
        await queue.enqueue(
            request=OperationRequest(
                kind=OperationKind.UPDATE, endpoint="/security", priority=Priority.HIGH
            )
        )
        await network.set_reachable(True)
    finally:
        triggers.stop()
        await client.aclose()

    assert seen == ["/api/security", "/api/notes"]


@dataclass
class _ToggleReachability:
    """Reachability fake without transition callbacks."""

    reachable: bool = False

    def is_reachable(self) -> bool:
        return self.reachable

    def subscribe(self, callback: object) -> Callable[[], None]:
        return lambda: None


@pytest.mark.asyncio
async def test_periodic_tick_drains_only_while_reachable() -> None:
    """Timer ticks should be ignored while offline."""
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, request=request)

    queue, _, client = _wire(handler, reachable=True)
    reachability = _ToggleReachability(reachable=False)
    scheduler = _FakeScheduler()
    triggers = SyncTriggers(
        queue=queue,
        reachability=reachability,
        scheduler=scheduler,
        interval_seconds=300,
    )
    triggers.start()
    try:
        interval, tick, job = scheduler.jobs[0]
        assert interval == 300

        await queue.enqueue(request=OperationRequest(kind=OperationKind.CREATE, endpoint="/a"))
        await tick()
        assert seen == []

        reachability.reachable = True
        await tick()
        assert seen == ["/api/a"]
    finally:
        triggers.stop()
        await client.aclose()

    assert job.cancelled is True


@pytest.mark.asyncio
async def test_going_offline_records_start_and_reconnect_clears_it() -> None:
    """The advisory offline-start flag should follow connectivity transitions."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, request=request)

    queue, network, client = _wire(handler, reachable=True)
    flags = InMemoryFlagStore()
    triggers = SyncTriggers(
        queue=queue,
        reachability=network,
        scheduler=_FakeScheduler(),
        interval_seconds=300,
        flags=flags,
        clock=_Clock(),
    )
    triggers.start()
    try:
        await network.set_reachable(False)
        assert flags.get(OFFLINE_STARTED_AT) == "2026-07-01T10:00:00Z"

        await network.set_reachable(True)
        assert flags.get(OFFLINE_STARTED_AT) is None
    finally:
        triggers.stop()
        await client.aclose()


class _ReadOnlyFlagStore(InMemoryFlagStore):
    """Flag store whose writes fail like a read-only directory."""

    def set(self, key: str, value: str) -> None:
        raise OSError("read-only file system")

    def delete(self, key: str) -> None:
        raise OSError("read-only file system")


@pytest.mark.asyncio
async def test_flag_write_failures_do_not_block_draining(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Reconnect and timer drains should proceed when flags cannot be written."""
    caplog.set_level(logging.WARNING, logger="services.action.sync_queue.triggers")
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, request=request)

    queue, network, client = _wire(handler, reachable=True)
    scheduler = _FakeScheduler()
    triggers = SyncTriggers(
        queue=queue,
        reachability=network,
        scheduler=scheduler,
        interval_seconds=300,
        flags=_ReadOnlyFlagStore(),
        clock=_Clock(),
    )
    triggers.start()
    try:
        await network.set_reachable(False)
        await queue.enqueue(
            request=OperationRequest(
                kind=OperationKind.UPDATE, endpoint="/profile", payload={"bio": "x"}
            )
        )
        await network.set_reachable(True)
        assert seen == ["/api/profile"]

        await queue.enqueue(request=OperationRequest(kind=OperationKind.CREATE, endpoint="/notes"))
        _, tick, _ = scheduler.jobs[0]
        await tick()
    finally:
        triggers.stop()
        await client.aclose()

    assert seen == ["/api/profile", "/api/notes"]
    assert queue.pending_operations() == []
    assert "Sync flag write failed; draining anyway" in caplog.text
