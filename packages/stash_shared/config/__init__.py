"""Public API for shared Stash configuration utilities."""

from .loader import load_settings, resolve_config_path
from .models import (
    CONFIG_PATH_ENV,
    DEFAULT_CONFIG_PATH,
    ComponentKind,
    ComponentsSettings,
    LoggingSettings,
    StashSettings,
    resolve_component_settings,
    split_component_id,
)

__all__ = [
    "CONFIG_PATH_ENV",
    "DEFAULT_CONFIG_PATH",
    "ComponentKind",
    "ComponentsSettings",
    "LoggingSettings",
    "StashSettings",
    "load_settings",
    "resolve_component_settings",
    "resolve_config_path",
    "split_component_id",
]
