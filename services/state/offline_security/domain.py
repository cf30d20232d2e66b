"""Domain contracts for audit entries and security configuration snapshots."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, JsonValue


class ActivitySource(StrEnum):
    """Connectivity state in which an audited activity happened."""

    ONLINE = "online"
    OFFLINE = "offline"


class SecurityLogEntry(BaseModel):
    """One append-only audit entry; ``id`` is assigned by the store."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int | None = None
    user_id: str
    event_type: str
    timestamp: datetime
    details: dict[str, JsonValue] = Field(default_factory=dict)
    source: ActivitySource = ActivitySource.OFFLINE
    session_id: str
    network_origin: str
    client_agent: str


class SecurityConfigSnapshot(BaseModel):
    """Non-secret view of the active security configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    encryption_enabled: bool
    algorithm: str
    key_length_bits: int
    key_derivation: str
    kdf_iterations: int
    key_source: str
    access_margin_seconds: int
    allowed_roles: tuple[str, ...]
    audit_retention_days: int
