"""Authoritative in-process Python API for the offline security service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from packages.stash_shared.clock import Clock
from packages.stash_shared.config import StashSettings
from resources.adapters.session import CredentialProvider, DeviceSecretProvider
from resources.substrates.sqlite import LocalStore
from services.state.offline_security.domain import (
    ActivitySource,
    SecurityConfigSnapshot,
    SecurityLogEntry,
)


class OfflineSecurityService(ABC):
    """Public API for at-rest encryption, offline access gating and auditing."""

    @abstractmethod
    def derive_key(self) -> bytes:
        """Derive the symmetric key for the active key source."""

    @abstractmethod
    def encrypt(self, *, payload: Any) -> str:
        """Seal one JSON-serializable payload into self-describing text."""

    @abstractmethod
    def decrypt(self, *, ciphertext: str) -> Any:
        """Open text produced by ``encrypt`` and return the original payload."""

    @abstractmethod
    def validate_offline_access(self) -> bool:
        """Return whether offline reads and writes are currently permitted."""

    @abstractmethod
    def require_offline_access(self) -> None:
        """Raise ``AccessDenied`` unless offline access is permitted."""

    @abstractmethod
    def validate_offline_token(self) -> bool:
        """Return whether the session credential decodes and is unexpired."""

    @abstractmethod
    def current_user_id(self) -> str | None:
        """Return the acting user id declared by the session credential."""

    @abstractmethod
    def log_activity(
        self,
        *,
        event_type: str,
        details: dict[str, Any] | None = None,
        source: ActivitySource = ActivitySource.OFFLINE,
    ) -> int | None:
        """Append one audit entry; failures are logged and swallowed."""

    @abstractmethod
    def security_logs(self, *, user_id: str) -> list[SecurityLogEntry]:
        """Return audit entries for one user in append order."""

    @abstractmethod
    def purge_expired_logs(self, *, retention_days: int | None = None) -> int:
        """Delete audit entries older than the retention window."""

    @abstractmethod
    def verify_integrity(self, *, blob: Any) -> bool:
        """Structurally validate one cached user blob."""

    @abstractmethod
    def hash(self, *, data: Any) -> str:
        """Return a deterministic SHA-256 content hash of ``data``."""

    @abstractmethod
    def security_config(self) -> SecurityConfigSnapshot:
        """Return a non-secret snapshot of the active configuration."""


def build_offline_security_service(
    *,
    settings: StashSettings,
    store: LocalStore,
    credentials: CredentialProvider,
    device_secrets: DeviceSecretProvider | None = None,
    clock: Clock | None = None,
) -> OfflineSecurityService:
    """Build the default offline security implementation from typed settings."""
    from resources.adapters.session import EnvDeviceSecretProvider
    from services.state.offline_security.config import resolve_offline_security_settings
    from services.state.offline_security.implementation import (
        DefaultOfflineSecurityService,
    )

    service_settings = resolve_offline_security_settings(settings)
    return DefaultOfflineSecurityService(
        settings=service_settings,
        store=store,
        credentials=credentials,
        device_secrets=device_secrets
        or EnvDeviceSecretProvider(env_var=service_settings.device_secret_env),
        clock=clock,
    )
