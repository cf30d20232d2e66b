"""Pydantic settings for the SQLite local store substrate."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.stash_shared.config import StashSettings, resolve_component_settings
from resources.substrates.sqlite.component import RESOURCE_COMPONENT_ID

MEMORY_DATABASE = ":memory:"


class SqliteSettings(BaseModel):
    """Location and schema version of the local offline database."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    database_path: str = "~/.local/share/stash/offline.db"
    database_name: str = "stash-offline"
    schema_version: int = Field(default=1, ge=1)
    busy_timeout_seconds: float = Field(default=5.0, gt=0)
    echo: bool = False

    @field_validator("database_path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        candidate = value.strip()
        if candidate == "":
            raise ValueError("substrate.sqlite.database_path is required")
        if candidate == MEMORY_DATABASE:
            return candidate
        return str(Path(candidate).expanduser())

    @field_validator("database_name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        candidate = value.strip()
        if candidate == "":
            raise ValueError("substrate.sqlite.database_name is required")
        return candidate

    @property
    def in_memory(self) -> bool:
        return self.database_path == MEMORY_DATABASE

    @property
    def url(self) -> str:
        """SQLAlchemy URL for the configured database file."""
        if self.in_memory:
            return "sqlite://"
        return f"sqlite:///{self.database_path}"


def resolve_sqlite_settings(settings: StashSettings) -> SqliteSettings:
    """Resolve SQLite substrate settings from ``components.substrate.sqlite``."""
    return resolve_component_settings(
        settings=settings,
        component_id=RESOURCE_COMPONENT_ID,
        model=SqliteSettings,
    )
