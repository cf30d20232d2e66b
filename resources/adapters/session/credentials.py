"""In-process credential holders and unverified JWT claim helpers.

Claims are decoded without signature verification: the remote API is the
authority on token validity, and offline checks only need the declared
subject, role and expiry.
"""

from __future__ import annotations

import os
import threading
from datetime import UTC, datetime
from typing import Any, Mapping

import jwt

from resources.adapters.session.adapter import CredentialProvider, DeviceSecretProvider

USER_ID_CLAIMS = ("sub", "userId")


class StaticCredentialProvider(CredentialProvider):
    """Mutable holder the host application updates on login, refresh and logout."""

    def __init__(
        self, *, access_token: str | None = None, refresh_token: str | None = None
    ) -> None:
        self._lock = threading.Lock()
        self._access_token = access_token
        self._refresh_token = refresh_token

    def access_token(self) -> str | None:
        with self._lock:
            return self._access_token

    def refresh_token(self) -> str | None:
        with self._lock:
            return self._refresh_token

    def set_tokens(self, *, access_token: str | None, refresh_token: str | None = None) -> None:
        """Replace both tokens atomically."""
        with self._lock:
            self._access_token = access_token
            self._refresh_token = refresh_token

    def clear(self) -> None:
        """Forget all credentials (logout)."""
        self.set_tokens(access_token=None, refresh_token=None)


class EnvDeviceSecretProvider(DeviceSecretProvider):
    """Read the device secret from one environment variable on each call."""

    def __init__(self, *, env_var: str) -> None:
        self._env_var = env_var

    def device_secret(self) -> str | None:
        value = os.environ.get(self._env_var, "").strip()
        return value or None


class StaticDeviceSecretProvider(DeviceSecretProvider):
    """Fixed device secret supplied by the host (keychain, secure enclave)."""

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def device_secret(self) -> str | None:
        return self._secret or None


def decode_claims(token: str | None) -> dict[str, Any] | None:
    """Decode JWT claims without verifying signature or expiry.

    Returns ``None`` for missing or malformed tokens.
    """
    if token is None or token.strip() == "":
        return None
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return None
    if not isinstance(claims, dict):
        return None
    return claims


def extract_user_id(claims: Mapping[str, Any] | None) -> str | None:
    """Return the acting user id from ``sub`` or ``userId`` claims."""
    if not claims:
        return None
    for name in USER_ID_CLAIMS:
        value = claims.get(name)
        if value not in (None, ""):
            return str(value)
    return None


def claims_expiry(claims: Mapping[str, Any] | None) -> datetime | None:
    """Return the ``exp`` claim as an aware UTC datetime when present."""
    if not claims:
        return None
    value = claims.get("exp")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(value, UTC)
    except (OverflowError, OSError, ValueError):
        return None
