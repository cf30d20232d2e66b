"""Composition root wiring the offline subsystem from typed settings."""

from __future__ import annotations

import httpx

from packages.stash_shared.clock import Clock
from packages.stash_shared.config import StashSettings
from packages.stash_shared.http import AsyncHttpClient
from packages.stash_shared.logging import configure_logging, get_logger, log_context
from resources.adapters.flags import FlagStore, InMemoryFlagStore
from resources.adapters.network import (
    AsyncioScheduler,
    ManualReachability,
    ReachabilitySource,
    Scheduler,
)
from resources.adapters.notify import LoggingNotifier, Notifier
from resources.adapters.session import CredentialProvider, DeviceSecretProvider
from resources.substrates.sqlite import SqliteLocalStore, resolve_sqlite_settings
from services.action.offline_data import (
    DefaultOfflineDataService,
    HttpUserSource,
    OfflineDataService,
    resolve_offline_data_settings,
)
from services.action.sync_queue import (
    DefaultSyncQueueService,
    HttpReplayTransport,
    SyncQueueService,
    SyncTriggers,
    resolve_sync_queue_settings,
)
from services.state.offline_security import (
    OfflineSecurityService,
    build_offline_security_service,
)

_LOGGER = get_logger(__name__)


class OfflineRuntime:
    """One fully wired offline subsystem with an explicit lifecycle.

    Every collaborator is owned by this instance; nothing lives in module
    state. ``start`` and ``stop`` must run inside the event loop that owns
    the scheduler.
    """

    def __init__(
        self,
        *,
        store: SqliteLocalStore,
        security: OfflineSecurityService,
        queue: SyncQueueService,
        triggers: SyncTriggers,
        data: OfflineDataService,
        reachability: ReachabilitySource,
        flags: FlagStore,
        http_clients: tuple[AsyncHttpClient, ...],
    ) -> None:
        self.store = store
        self.security = security
        self.queue = queue
        self.triggers = triggers
        self.data = data
        self.reachability = reachability
        self.flags = flags
        self._http_clients = http_clients
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Open the store, apply audit retention and start sync triggers."""
        if self._running:
            return
        self.store.initialize()
        purged = self.security.purge_expired_logs()
        self.triggers.start()
        self._running = True
        with log_context({"purged_security_logs": purged}):
            _LOGGER.info("Offline runtime started")

    async def stop(self) -> None:
        """Stop triggers, then release HTTP clients and the store."""
        self.triggers.stop()
        for client in self._http_clients:
            await client.aclose()
        self.store.close()
        if self._running:
            _LOGGER.info("Offline runtime stopped")
        self._running = False

    async def __aenter__(self) -> OfflineRuntime:
        await self.start()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.stop()


def configure_runtime_logging(settings: StashSettings) -> None:
    """Apply the ``logging`` section of runtime settings to the root logger."""
    configure_logging(
        level=settings.logging.level,
        json_output=settings.logging.json_output,
        service=settings.logging.service,
        environment=settings.logging.environment,
    )


def build_offline_runtime(
    *,
    settings: StashSettings,
    credentials: CredentialProvider,
    device_secrets: DeviceSecretProvider | None = None,
    reachability: ReachabilitySource | None = None,
    scheduler: Scheduler | None = None,
    flags: FlagStore | None = None,
    notifier: Notifier | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
    clock: Clock | None = None,
) -> OfflineRuntime:
    """Construct store, security, queue, triggers and data service.

    ``http_transport`` replaces the network transport of both HTTP clients,
    which lets hosts and tests route replay and fetch traffic in process.
    """
    store = SqliteLocalStore(settings=resolve_sqlite_settings(settings), clock=clock)
    security = build_offline_security_service(
        settings=settings,
        store=store,
        credentials=credentials,
        device_secrets=device_secrets,
        clock=clock,
    )

    queue_settings = resolve_sync_queue_settings(settings)
    data_settings = resolve_offline_data_settings(settings)
    replay_client = AsyncHttpClient(
        base_url=queue_settings.base_url,
        timeout_seconds=queue_settings.request_timeout_seconds,
        transport=http_transport,
    )
    fetch_client = AsyncHttpClient(
        base_url=data_settings.base_url,
        timeout_seconds=data_settings.request_timeout_seconds,
        transport=http_transport,
    )

    network = reachability or ManualReachability(reachable=True)
    flag_store = flags if flags is not None else InMemoryFlagStore()
    queue = DefaultSyncQueueService(
        settings=queue_settings,
        store=store,
        transport=HttpReplayTransport(client=replay_client, credentials=credentials),
        security=security,
        reachability=network,
        clock=clock,
    )
    triggers = SyncTriggers(
        queue=queue,
        reachability=network,
        scheduler=scheduler or AsyncioScheduler(),
        interval_seconds=queue_settings.periodic_interval_seconds,
        flags=flag_store,
        clock=clock,
    )
    data = DefaultOfflineDataService(
        settings=data_settings,
        store=store,
        security=security,
        queue=queue,
        source=HttpUserSource(
            client=fetch_client,
            credentials=credentials,
            fetch_path=data_settings.user_fetch_path,
            clock=clock,
        ),
        flags=flag_store,
        notifier=notifier or LoggingNotifier(),
        clock=clock,
    )
    return OfflineRuntime(
        store=store,
        security=security,
        queue=queue,
        triggers=triggers,
        data=data,
        reachability=network,
        flags=flag_store,
        http_clients=(replay_client, fetch_client),
    )
