"""Pydantic settings for offline encryption, access gating and auditing."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.stash_shared.config import StashSettings, resolve_component_settings
from services.state.offline_security.component import SERVICE_COMPONENT_ID


class KeySource(StrEnum):
    """Secret used as the password input of key derivation."""

    SESSION_CREDENTIAL = "session_credential"
    DEVICE_SECRET = "device_secret"


class OfflineSecuritySettings(BaseModel):
    """Offline security behavior settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    encryption_enabled: bool = True
    kdf_iterations: int = Field(default=100_000, ge=100_000)
    kdf_salt: str = "stash-offline"
    key_length_bits: int = 256
    nonce_bytes: int = Field(default=12, ge=12, le=16)
    key_source: KeySource = KeySource.SESSION_CREDENTIAL
    device_secret_env: str = "STASH_DEVICE_SECRET"
    access_margin_seconds: int = Field(default=3600, ge=0)
    allowed_roles: tuple[str, ...] = ("user", "admin")
    audit_retention_days: int = Field(default=30, gt=0)
    client_agent: str = "stash-offline"

    @field_validator("kdf_salt")
    @classmethod
    def _validate_salt(cls, value: str) -> str:
        if len(value.encode("utf-8")) < 8:
            raise ValueError("kdf_salt must be at least 8 bytes")
        return value

    @field_validator("key_length_bits")
    @classmethod
    def _validate_key_length(cls, value: int) -> int:
        if value not in (128, 192, 256):
            raise ValueError("key_length_bits must be one of 128, 192, 256")
        return value

    @field_validator("allowed_roles")
    @classmethod
    def _validate_roles(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        roles = tuple(role.strip() for role in value if role.strip() != "")
        if len(roles) == 0:
            raise ValueError("allowed_roles must not be empty")
        return roles


def resolve_offline_security_settings(settings: StashSettings) -> OfflineSecuritySettings:
    """Resolve security settings from ``components.service.offline_security``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=OfflineSecuritySettings,
    )
