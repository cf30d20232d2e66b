"""Contracts for session credential and device secret collaborators."""

from __future__ import annotations

from typing import Protocol


class CredentialProvider(Protocol):
    """Source of the live session credentials issued by the remote API."""

    def access_token(self) -> str | None:
        """Return the current bearer access token, or ``None`` when signed out."""

    def refresh_token(self) -> str | None:
        """Return the current refresh token, or ``None`` when unavailable."""


class DeviceSecretProvider(Protocol):
    """Source of a stable, device-bound secret that outlives session tokens."""

    def device_secret(self) -> str | None:
        """Return the device secret, or ``None`` when none is provisioned."""
