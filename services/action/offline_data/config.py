"""Pydantic settings for the offline data service."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.stash_shared.config import StashSettings, resolve_component_settings
from services.action.offline_data.component import SERVICE_COMPONENT_ID


class MergePolicyName(StrEnum):
    """Strategy used to combine local edits with remote data."""

    SHALLOW = "shallow"
    LAST_WRITE_WINS = "last_write_wins"


class OfflineDataSettings(BaseModel):
    """Offline cache, export and remote fetch settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str = "http://localhost:8000/api"
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    default_max_age_seconds: int = Field(default=3600, ge=0)
    profile_endpoint: str = "/profile"
    user_endpoint: str = "/users/update"
    user_fetch_path: str = "/users/{user_id}"
    export_version: str = "1.0"
    merge_policy: MergePolicyName = MergePolicyName.LAST_WRITE_WINS
    encrypt_at_rest: bool = True
    require_offline_access: bool = True

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return normalized

    @field_validator("profile_endpoint", "user_endpoint")
    @classmethod
    def _validate_endpoint(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized.startswith("/"):
            raise ValueError("endpoints must be absolute paths such as '/profile'")
        return normalized

    @field_validator("user_fetch_path")
    @classmethod
    def _validate_fetch_path(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized.startswith("/") or "{user_id}" not in normalized:
            raise ValueError("user_fetch_path must be absolute and contain '{user_id}'")
        return normalized


def resolve_offline_data_settings(settings: StashSettings) -> OfflineDataSettings:
    """Resolve offline data settings from ``components.service.offline_data``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=OfflineDataSettings,
    )
