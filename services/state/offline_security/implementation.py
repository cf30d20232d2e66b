"""Concrete offline security service implementation."""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import os
from collections.abc import Mapping
from datetime import timedelta
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from packages.stash_shared.clock import Clock, SystemClock, format_timestamp, parse_timestamp
from packages.stash_shared.errors import (
    AccessDenied,
    DecryptionFailure,
    EncryptionFailure,
    StashError,
)
from packages.stash_shared.ids import generate_ulid_str
from packages.stash_shared.logging import (
    fields,
    get_logger,
    log_context,
    public_api_instrumented,
)
from resources.adapters.session import (
    CredentialProvider,
    DeviceSecretProvider,
    claims_expiry,
    decode_claims,
    extract_user_id,
)
from resources.substrates.sqlite import SECURITY_LOGS, LocalStore
from services.state.offline_security.component import SERVICE_COMPONENT_ID
from services.state.offline_security.config import KeySource, OfflineSecuritySettings
from services.state.offline_security.domain import (
    ActivitySource,
    SecurityConfigSnapshot,
    SecurityLogEntry,
)
from services.state.offline_security.keys import KeyDeriver
from services.state.offline_security.service import OfflineSecurityService

_LOGGER = get_logger(__name__)

_TAG_BYTES = 16
UNKNOWN_USER = "unknown"


class DefaultOfflineSecurityService(OfflineSecurityService):
    """AES-GCM sealing with PBKDF2 keys, JWT-claim access gating and audit logs."""

    def __init__(
        self,
        *,
        settings: OfflineSecuritySettings,
        store: LocalStore,
        credentials: CredentialProvider,
        device_secrets: DeviceSecretProvider | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._credentials = credentials
        self._device_secrets = device_secrets
        self._clock = clock or SystemClock()
        self._session_id = generate_ulid_str()
        self._keys = KeyDeriver(
            salt=settings.kdf_salt.encode("utf-8"),
            iterations=settings.kdf_iterations,
            length_bytes=settings.key_length_bits // 8,
        )

    @property
    def session_id(self) -> str:
        return self._session_id

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def derive_key(self) -> bytes:
        """Derive the key for the active key source.

        Raises ``EncryptionFailure`` when the source has no secret to offer;
        there is no fallback password.
        """
        return self._key(EncryptionFailure)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def encrypt(self, *, payload: Any) -> str:
        """Seal one payload as base64 of ``nonce || ciphertext || tag``."""
        try:
            plaintext = json.dumps(payload, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise EncryptionFailure(message=f"payload is not JSON serializable: {exc}") from exc

        if not self._settings.encryption_enabled:
            return plaintext

        key = self._key(EncryptionFailure)
        nonce = os.urandom(self._settings.nonce_bytes)
        sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def decrypt(self, *, ciphertext: str) -> Any:
        """Open one sealed payload; any tampering raises ``DecryptionFailure``."""
        if not self._settings.encryption_enabled:
            return _loads(ciphertext)

        try:
            raw = base64.b64decode(ciphertext.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError, AttributeError) as exc:
            raise DecryptionFailure(message="ciphertext is not valid base64") from exc

        nonce_bytes = self._settings.nonce_bytes
        if len(raw) < nonce_bytes + _TAG_BYTES:
            raise DecryptionFailure(message="ciphertext is truncated")

        key = self._key(DecryptionFailure)
        try:
            plaintext = AESGCM(key).decrypt(raw[:nonce_bytes], raw[nonce_bytes:], None)
        except InvalidTag as exc:
            raise DecryptionFailure(
                message="authentication tag mismatch (tampered data or different key)"
            ) from exc
        return _loads(plaintext.decode("utf-8"))

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def validate_offline_access(self) -> bool:
        """Permit offline access only with a comfortably unexpired, allowed credential.

        The credential must expire more than ``access_margin_seconds`` from now;
        "not yet expired" is not enough.
        """
        reason = self._access_denial_reason()
        if reason is None:
            return True
        with log_context({"reason": reason}):
            _LOGGER.info("Offline access denied")
        return False

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def require_offline_access(self) -> None:
        """Raise ``AccessDenied`` unless offline access is permitted."""
        reason = self._access_denial_reason()
        if reason is not None:
            raise AccessDenied(message=f"offline access denied: {reason}")

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def validate_offline_token(self) -> bool:
        """Return whether the credential decodes and has not expired yet."""
        expiry = claims_expiry(decode_claims(self._credentials.access_token()))
        return expiry is not None and expiry > self._clock.now()

    def current_user_id(self) -> str | None:
        """Return the ``sub``/``userId`` claim of the session credential."""
        return extract_user_id(decode_claims(self._credentials.access_token()))

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("event_type",),
    )
    def log_activity(
        self,
        *,
        event_type: str,
        details: dict[str, Any] | None = None,
        source: ActivitySource = ActivitySource.OFFLINE,
    ) -> int | None:
        """Append one audit entry and return its store-assigned id.

        Audit logging must never block the operation it describes, so any
        failure is logged and ``None`` is returned.
        """
        try:
            entry = SecurityLogEntry(
                user_id=self.current_user_id() or UNKNOWN_USER,
                event_type=event_type,
                timestamp=self._clock.now(),
                details=dict(details or {}),
                source=source,
                session_id=self._session_id,
                network_origin="offline" if source is ActivitySource.OFFLINE else "online",
                client_agent=self._settings.client_agent,
            )
            document = entry.model_dump(mode="json", exclude={"id"})
            document["timestamp"] = format_timestamp(entry.timestamp)
            key = self._store.put(SECURITY_LOGS.name, document)
        except Exception as exc:  # noqa: BLE001
            with log_context(
                {
                    fields.EVENT: event_type,
                    fields.ERRORS: [f"{type(exc).__name__}: {exc}"],
                }
            ):
                _LOGGER.warning("Failed to append security log entry")
            return None
        return int(key)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("user_id",)
    )
    def security_logs(self, *, user_id: str) -> list[SecurityLogEntry]:
        """Return audit entries for one user in append order."""
        documents = self._store.get_by_index(SECURITY_LOGS.name, "user_id", user_id)
        return [SecurityLogEntry.model_validate(document) for document in documents]

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def purge_expired_logs(self, *, retention_days: int | None = None) -> int:
        """Delete audit entries at or before ``now - retention_days``."""
        days = self._settings.audit_retention_days if retention_days is None else retention_days
        if days < 0:
            raise ValueError("retention_days must be >= 0")
        cutoff = self._clock.now() - timedelta(days=days)
        return self._store.purge_older_than(SECURITY_LOGS.name, "timestamp", cutoff)

    def verify_integrity(self, *, blob: Any) -> bool:
        """Check the shape of one cached user blob.

        This is a structural check against corrupt cache entries, not a
        cryptographic one.
        """
        if not isinstance(blob, Mapping):
            return False
        if not isinstance(blob.get("user"), Mapping):
            return False
        if not isinstance(blob.get("profile"), Mapping):
            return False
        if not isinstance(blob.get("security_logs"), list):
            return False
        return parse_timestamp(blob.get("last_sync_at")) is not None

    def hash(self, *, data: Any) -> str:
        """Return the SHA-256 hex digest of canonical JSON for ``data``."""
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def security_config(self) -> SecurityConfigSnapshot:
        """Return a non-secret snapshot of the active configuration."""
        settings = self._settings
        return SecurityConfigSnapshot(
            encryption_enabled=settings.encryption_enabled,
            algorithm="AES-GCM",
            key_length_bits=settings.key_length_bits,
            key_derivation="PBKDF2-HMAC-SHA256",
            kdf_iterations=settings.kdf_iterations,
            key_source=settings.key_source.value,
            access_margin_seconds=settings.access_margin_seconds,
            allowed_roles=settings.allowed_roles,
            audit_retention_days=settings.audit_retention_days,
        )

    def forget_keys(self) -> None:
        """Drop cached key material, for example on logout."""
        self._keys.forget()

    def _key(self, failure: type[StashError]) -> bytes:
        """Derive the key for the active source or raise ``failure``."""
        if self._settings.key_source is KeySource.DEVICE_SECRET:
            secret = None if self._device_secrets is None else self._device_secrets.device_secret()
            if not secret:
                raise failure(message="no device secret available for key derivation")
            return self._keys.derive(secret)

        token = self._credentials.access_token()
        if not token:
            raise failure(message="no session credential available for key derivation")
        return self._keys.derive(token)

    def _access_denial_reason(self) -> str | None:
        token = self._credentials.access_token()
        if not token:
            return "no session credential"
        claims = decode_claims(token)
        if claims is None:
            return "credential could not be decoded"
        expiry = claims_expiry(claims)
        if expiry is None:
            return "credential has no expiry"
        margin = timedelta(seconds=self._settings.access_margin_seconds)
        if expiry <= self._clock.now() + margin:
            return "credential expires within the offline access margin"
        if claims.get("role") not in self._settings.allowed_roles:
            return "role not allowed offline"
        return None


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        raise DecryptionFailure(message="decrypted payload is not valid JSON") from exc
