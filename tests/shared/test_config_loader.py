"""Tests for pydantic-settings-backed shared configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from packages.stash_shared.config import (
    CONFIG_PATH_ENV,
    ComponentKind,
    load_settings,
    resolve_component_settings,
    resolve_config_path,
    split_component_id,
)
from resources.substrates.sqlite import SqliteSettings
from services.action.sync_queue import SyncQueueSettings
from services.action.sync_queue.component import SERVICE_COMPONENT_ID


def test_load_settings_uses_stash_precedence_cascade(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Init params should override env, env should override YAML, then defaults."""
    config_file = tmp_path / "stash.yaml"
    config_file.write_text(
        "\n".join(
            [
                "logging:",
                "  level: WARNING",
                "  service: stash-yaml",
                "components:",
                "  substrate:",
                "    sqlite:",
                "      busy_timeout_seconds: 7",
                "  service:",
                "    sync_queue:",
                "      default_max_retries: 5",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("STASH_LOGGING__LEVEL", "ERROR")
    monkeypatch.setenv("STASH_LOGGING__ENVIRONMENT", "test")

    settings = load_settings(
        cli_params={"logging": {"level": "DEBUG"}},
        config_path=config_file,
    )
    sqlite = resolve_component_settings(
        settings=settings,
        component_id="substrate_sqlite",
        model=SqliteSettings,
    )
    queue = resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=SyncQueueSettings,
    )

    assert settings.logging.level == "DEBUG"
    assert settings.logging.environment == "test"
    assert settings.logging.service == "stash-yaml"
    assert sqlite.busy_timeout_seconds == 7
    assert queue.default_max_retries == 5
    assert queue.default_retry_delay_ms == 1000


def test_load_settings_uses_model_defaults_when_sources_missing(tmp_path: Path) -> None:
    """Settings should fall back to model defaults when env and YAML are absent."""
    settings = load_settings(config_path=tmp_path / "stash.yaml")
    sqlite = resolve_component_settings(
        settings=settings,
        component_id="substrate_sqlite",
        model=SqliteSettings,
    )

    assert settings.logging.service == "stash"
    assert settings.logging.level == "INFO"
    assert sqlite.database_name == "stash-offline"
    assert sqlite.schema_version == 1


def test_flat_component_keys_are_rejected(tmp_path: Path) -> None:
    """``components.service_x`` should point users at the grouped form."""
    config_file = tmp_path / "stash.yaml"
    config_file.write_text(
        "components:\n  service_sync_queue:\n    default_max_retries: 1\n",
        encoding="utf-8",
    )

    with pytest.raises(ValidationError, match="components.service.sync_queue"):
        load_settings(config_path=config_file)


def test_resolve_component_settings_rejects_unknown_keys(tmp_path: Path) -> None:
    """Component models forbid extras so typos fail loudly."""
    settings = load_settings(
        cli_params={"components": {"service": {"sync_queue": {"max_retry": 2}}}},
        config_path=tmp_path / "stash.yaml",
    )

    with pytest.raises(ValidationError):
        resolve_component_settings(
            settings=settings,
            component_id=SERVICE_COMPONENT_ID,
            model=SyncQueueSettings,
        )


def test_resolve_component_settings_requires_kind_prefix(tmp_path: Path) -> None:
    settings = load_settings(config_path=tmp_path / "stash.yaml")

    with pytest.raises(ValueError, match="component_id"):
        resolve_component_settings(
            settings=settings, component_id="sync", model=SyncQueueSettings
        )


def test_config_path_falls_back_to_environment_variable(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Without an explicit path, ``STASH_CONFIG`` selects the YAML file."""
    config_file = tmp_path / "custom.yaml"
    config_file.write_text("logging:\n  level: warning\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_PATH_ENV, str(config_file))

    assert resolve_config_path() == config_file
    assert resolve_config_path(tmp_path / "other.yaml") == tmp_path / "other.yaml"
    assert load_settings().logging.level == "WARNING"


def test_split_component_id() -> None:
    assert split_component_id("service_offline_data") == (
        ComponentKind.SERVICE,
        "offline_data",
    )
    with pytest.raises(ValueError):
        split_component_id("service_")
