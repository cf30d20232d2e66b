"""Domain contracts for cached user records, exports and metrics."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, JsonValue

from services.action.sync_queue import QueuedOperation


class RecordSection(StrEnum):
    """Editable sections of a cached user record."""

    USER = "user"
    PROFILE = "profile"


class CachedUserRecord(BaseModel):
    """Decrypted view of one user's offline cache entry."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    email: str | None = None
    user: dict[str, JsonValue]
    profile: dict[str, JsonValue]
    security_logs: tuple[int, ...] = ()
    last_sync_at: datetime
    created_at: datetime
    updated_at: datetime
    version: int = Field(default=1, ge=1)
    field_stamps: dict[RecordSection, dict[str, datetime]] = Field(default_factory=dict)
    content_hash: str = ""


class RemoteUserSnapshot(BaseModel):
    """Current user data as returned by the remote source."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: str
    data: dict[str, JsonValue]
    updated_at: datetime | None = None
    fetched_at: datetime


class OfflineUpdate(BaseModel):
    """Result of one optimistic offline edit."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    operation: QueuedOperation
    record: CachedUserRecord | None = None


class ExportInfo(BaseModel):
    """Self-describing metadata attached to every export."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    exported_at: str
    exported_by: str
    format: Literal["json"] = "json"
    source: Literal["offline"] = "offline"
    version: str


class ExportBundle(BaseModel):
    """Downloadable snapshot of one user's cached data."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user: dict[str, JsonValue]
    profile: dict[str, JsonValue]
    security_logs: list[dict[str, JsonValue]]
    export_info: ExportInfo


class OfflineMetrics(BaseModel):
    """Point-in-time observability snapshot for one user."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    offline_time_seconds: int
    operations_queued: int
    sync_success_rate: float
    data_freshness_seconds: int
    last_sync_at: datetime | None = None
    measured_at: datetime
