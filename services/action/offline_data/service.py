"""Authoritative in-process Python API for the offline data service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from packages.stash_shared.clock import Clock
from packages.stash_shared.config import StashSettings
from packages.stash_shared.http import AsyncHttpClient
from resources.adapters.flags import FlagStore
from resources.adapters.notify import Notifier
from resources.adapters.session import CredentialProvider
from resources.substrates.sqlite import LocalStore
from services.action.offline_data.domain import (
    CachedUserRecord,
    OfflineMetrics,
    OfflineUpdate,
)
from services.action.offline_data.source import UserSource
from services.action.sync_queue import SyncQueueService
from services.state.offline_security import OfflineSecurityService


class OfflineDataService(ABC):
    """Public API for a user's offline cache, edits, exports and freshness."""

    @abstractmethod
    async def sync_user_data(self, *, user_id: str) -> CachedUserRecord:
        """Fetch current remote data and store it as the cached record."""

    @abstractmethod
    def get_offline_user_data(self, *, user_id: str) -> CachedUserRecord | None:
        """Return the cached record for one user, or ``None``."""

    @abstractmethod
    def get_all_offline_users(self) -> list[CachedUserRecord]:
        """Return every readable cached record."""

    @abstractmethod
    async def update_profile_offline(self, *, patch: Mapping[str, Any]) -> OfflineUpdate:
        """Queue a profile update and merge it into the local cache."""

    @abstractmethod
    async def update_user_offline(self, *, patch: Mapping[str, Any]) -> OfflineUpdate:
        """Queue a user update and merge it into the local cache."""

    @abstractmethod
    def export_data(self, *, user_id: str) -> str:
        """Serialize one user's cached data as a JSON export bundle."""

    @abstractmethod
    def export_filename(self, *, user_id: str) -> str:
        """Return the download filename for one user's export."""

    @abstractmethod
    def write_export(self, *, user_id: str, directory: Path) -> Path:
        """Write one user's export bundle into ``directory``."""

    @abstractmethod
    def data_freshness_seconds(self, *, user_id: str) -> int:
        """Return seconds since last sync, or ``-1`` when nothing is cached."""

    @abstractmethod
    def is_stale(self, *, user_id: str, max_age_seconds: int | None = None) -> bool:
        """Return whether cached data is older than ``max_age_seconds``."""

    @abstractmethod
    async def refresh_if_stale(
        self, *, user_id: str, max_age_seconds: int | None = None
    ) -> bool:
        """Resync when stale and return whether a resync happened."""

    @abstractmethod
    async def force_sync(self, *, user_id: str) -> CachedUserRecord:
        """Resync unconditionally."""

    @abstractmethod
    def clear_offline_data(self, *, user_id: str) -> bool:
        """Purge the cached record for one user."""

    @abstractmethod
    def metrics(self, *, user_id: str) -> OfflineMetrics:
        """Return queue, replay and freshness aggregates for one user."""


def build_offline_data_service(
    *,
    settings: StashSettings,
    store: LocalStore,
    credentials: CredentialProvider,
    security: OfflineSecurityService,
    queue: SyncQueueService,
    source: UserSource | None = None,
    flags: FlagStore | None = None,
    notifier: Notifier | None = None,
    clock: Clock | None = None,
) -> OfflineDataService:
    """Build the default offline data service with an HTTP user source."""
    from resources.adapters.notify import LoggingNotifier
    from services.action.offline_data.config import resolve_offline_data_settings
    from services.action.offline_data.implementation import DefaultOfflineDataService
    from services.action.offline_data.source import HttpUserSource

    service_settings = resolve_offline_data_settings(settings)
    return DefaultOfflineDataService(
        settings=service_settings,
        store=store,
        security=security,
        queue=queue,
        source=source
        or HttpUserSource(
            client=AsyncHttpClient(
                base_url=service_settings.base_url,
                timeout_seconds=service_settings.request_timeout_seconds,
            ),
            credentials=credentials,
            fetch_path=service_settings.user_fetch_path,
            clock=clock,
        ),
        flags=flags,
        notifier=notifier or LoggingNotifier(),
        clock=clock,
    )
