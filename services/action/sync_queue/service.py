"""Authoritative in-process Python API for the sync queue service."""

from __future__ import annotations

from abc import ABC, abstractmethod

from packages.stash_shared.clock import Clock
from packages.stash_shared.config import StashSettings
from packages.stash_shared.http import AsyncHttpClient
from resources.adapters.network import ReachabilitySource
from resources.adapters.session import CredentialProvider
from resources.substrates.sqlite import LocalStore
from services.action.sync_queue.domain import (
    DeadLetter,
    DrainReport,
    OperationRequest,
    Priority,
    QueuedOperation,
    QueueStats,
    SyncResult,
)
from services.action.sync_queue.replay import ReplayTransport
from services.state.offline_security import OfflineSecurityService


class SyncQueueService(ABC):
    """Public API for durable, priority-ordered replay of offline mutations."""

    @abstractmethod
    async def enqueue(self, *, request: OperationRequest) -> QueuedOperation:
        """Persist one mutation and return it with id and arrival time."""

    @abstractmethod
    async def drain(self) -> DrainReport:
        """Replay every pending operation once; no-op while a drain runs."""

    @abstractmethod
    async def drain_high_priority_only(self) -> DrainReport:
        """Replay pending high-priority operations only."""

    @abstractmethod
    async def retry(self, *, operation_id: str) -> SyncResult:
        """Replay one operation out of band; replay errors propagate."""

    @abstractmethod
    def pending_operations(self) -> list[QueuedOperation]:
        """Return active operations in replay order."""

    @abstractmethod
    def operations_by_priority(self, *, priority: Priority) -> list[QueuedOperation]:
        """Return active operations of one priority in replay order."""

    @abstractmethod
    def dead_letters(self) -> list[DeadLetter]:
        """Return operations that exhausted their retries."""

    @abstractmethod
    def requeue_dead_letter(self, *, operation_id: str) -> QueuedOperation:
        """Move one dead letter back to the active queue with a fresh budget."""

    @abstractmethod
    def discard_dead_letter(self, *, operation_id: str) -> bool:
        """Delete one dead letter permanently."""

    @abstractmethod
    def sync_results(self) -> list[SyncResult]:
        """Return the bounded in-memory history of replay attempts."""

    @abstractmethod
    def success_rate(self) -> float:
        """Return the percentage of successful attempts in recent history."""

    @abstractmethod
    def stats(self) -> QueueStats:
        """Return queue depth and replay history aggregates."""


def build_sync_queue_service(
    *,
    settings: StashSettings,
    store: LocalStore,
    credentials: CredentialProvider,
    security: OfflineSecurityService | None = None,
    reachability: ReachabilitySource | None = None,
    transport: ReplayTransport | None = None,
    clock: Clock | None = None,
) -> SyncQueueService:
    """Build the default sync queue with an HTTP replay transport."""
    from services.action.sync_queue.config import resolve_sync_queue_settings
    from services.action.sync_queue.implementation import DefaultSyncQueueService
    from services.action.sync_queue.replay import HttpReplayTransport

    service_settings = resolve_sync_queue_settings(settings)
    return DefaultSyncQueueService(
        settings=service_settings,
        store=store,
        transport=transport
        or HttpReplayTransport(
            client=AsyncHttpClient(
                base_url=service_settings.base_url,
                timeout_seconds=service_settings.request_timeout_seconds,
            ),
            credentials=credentials,
        ),
        security=security,
        reachability=reachability,
        clock=clock,
    )
