"""Typed configuration models for Stash runtime settings.

Component settings are grouped by kind::

    components:
      substrate:
        sqlite: {...}
      service:
        sync_queue: {...}

and looked up with :func:`resolve_component_settings` using the component id
``<kind>_<name>`` (``substrate_sqlite``, ``service_sync_queue``).
"""

from __future__ import annotations

from contextvars import ContextVar
from enum import StrEnum
from pathlib import Path
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "stash" / "stash.yaml"
CONFIG_PATH_ENV = "STASH_CONFIG"

# Set by ``load_settings`` for the duration of one settings construction.
_ACTIVE_CONFIG_PATH: ContextVar[Path] = ContextVar(
    "stash_config_path", default=DEFAULT_CONFIG_PATH
)


class ComponentKind(StrEnum):
    """Top-level grouping of configurable components."""

    SERVICE = "service"
    ADAPTER = "adapter"
    SUBSTRATE = "substrate"


_KINDS = frozenset(kind.value for kind in ComponentKind)


def split_component_id(component_id: str) -> tuple[ComponentKind, str]:
    """Split ``<kind>_<name>`` into its kind and name."""
    kind, separator, name = component_id.partition("_")
    if not separator or not name or kind not in _KINDS:
        raise ValueError(
            f"component_id must look like <kind>_<name> with kind in "
            f"{sorted(_KINDS)}: {component_id!r}"
        )
    return ComponentKind(kind), name


class LoggingSettings(BaseModel):
    """Root logging options; see ``stash_shared.logging.configure_logging``."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = True
    service: str = "stash"
    environment: str = "dev"

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value


class ComponentsSettings(BaseModel):
    """Raw per-kind component mappings, validated later by each component."""

    model_config = ConfigDict(extra="forbid")

    service: dict[str, Any] = Field(default_factory=dict)
    adapter: dict[str, Any] = Field(default_factory=dict)
    substrate: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _reject_flat_component_keys(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        for key in value:
            if not isinstance(key, str) or key in _KINDS:
                continue
            try:
                kind, name = split_component_id(key)
            except ValueError:
                continue
            raise ValueError(
                f"components.{key} is invalid; use components.{kind}.{name} instead"
            )
        return value

    def section(self, kind: ComponentKind, name: str) -> dict[str, Any]:
        """Return the raw mapping for one component, empty when unset."""
        namespace: dict[str, Any] = getattr(self, kind.value)
        section = namespace.get(name, {})
        if section is None:
            return {}
        if not isinstance(section, dict):
            raise TypeError(f"components.{kind}.{name} must be a mapping")
        return section


class StashSettings(BaseSettings):
    """Root settings: CLI/init > ``STASH_*`` env > YAML file > defaults."""

    model_config = SettingsConfigDict(
        env_prefix="STASH_",
        env_nested_delimiter="__",
        extra="ignore",
        nested_model_default_partial_update=True,
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    components: ComponentsSettings = Field(default_factory=ComponentsSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        yaml_settings = YamlConfigSettingsSource(
            settings_cls,
            yaml_file=_ACTIVE_CONFIG_PATH.get(),
            yaml_file_encoding="utf-8",
        )
        return init_settings, env_settings, yaml_settings


TComponentSettings = TypeVar("TComponentSettings", bound=BaseModel)


def resolve_component_settings(
    *,
    settings: StashSettings,
    component_id: str,
    model: type[TComponentSettings],
) -> TComponentSettings:
    """Validate one component's settings section against its model."""
    kind, name = split_component_id(component_id)
    return model.model_validate(settings.components.section(kind, name))
