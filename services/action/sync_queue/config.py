"""Pydantic settings for queued mutation replay."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.stash_shared.config import StashSettings, resolve_component_settings
from services.action.sync_queue.component import SERVICE_COMPONENT_ID


class ExhaustedPolicy(StrEnum):
    """Disposition of operations that used up their retry budget."""

    DEAD_LETTER = "dead_letter"
    DROP = "drop"


class SyncQueueSettings(BaseModel):
    """Sync queue replay and retry settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str = "http://localhost:8000/api"
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    default_max_retries: int = Field(default=3, ge=0)
    default_retry_delay_ms: int = Field(default=1000, ge=0)
    periodic_interval_seconds: float = Field(default=300.0, gt=0)
    result_history_limit: int = Field(default=100, gt=0)
    exhausted_policy: ExhaustedPolicy = ExhaustedPolicy.DEAD_LETTER

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return normalized


def resolve_sync_queue_settings(settings: StashSettings) -> SyncQueueSettings:
    """Resolve sync queue settings from ``components.service.sync_queue``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=SyncQueueSettings,
    )
