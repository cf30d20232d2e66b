"""Configuration loading with deterministic precedence.

Highest wins:

1. ``cli_params`` passed to :func:`load_settings`
2. ``STASH_*`` environment variables, ``__`` between nested keys
   (``STASH_LOGGING__LEVEL=DEBUG`` sets ``logging.level``)
3. the YAML file: ``config_path``, else ``$STASH_CONFIG``, else
   ``~/.config/stash/stash.yaml``; a missing file is skipped
4. model defaults
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

from .models import CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH, StashSettings, _ACTIVE_CONFIG_PATH


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    """Return the YAML file that ``load_settings`` would read."""
    if config_path is not None:
        return Path(config_path).expanduser()
    from_env = os.environ.get(CONFIG_PATH_ENV, "").strip()
    if from_env:
        return Path(from_env).expanduser()
    return DEFAULT_CONFIG_PATH


def load_settings(
    *,
    cli_params: Mapping[str, Any] | None = None,
    config_path: str | Path | None = None,
) -> StashSettings:
    """Build root settings from every configured source."""
    token = _ACTIVE_CONFIG_PATH.set(resolve_config_path(config_path))
    try:
        return StashSettings(**dict(cli_params or {}))
    finally:
        _ACTIVE_CONFIG_PATH.reset(token)
