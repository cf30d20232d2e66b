"""Tests for SQLite substrate settings resolution."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from packages.stash_shared.config import load_settings
from resources.substrates.sqlite.config import SqliteSettings, resolve_sqlite_settings


def test_database_path_expands_user_home() -> None:
    """Home-relative paths should be expanded at validation time."""
    settings = SqliteSettings(database_path="~/stash/offline.db")

    assert settings.database_path == str(Path("~/stash/offline.db").expanduser())
    assert settings.url == f"sqlite:///{settings.database_path}"


def test_memory_database_keeps_sentinel_path() -> None:
    """The in-memory sentinel should map onto the bare SQLite URL."""
    settings = SqliteSettings(database_path=":memory:")

    assert settings.in_memory is True
    assert settings.url == "sqlite://"


def test_schema_version_must_be_positive() -> None:
    """Schema versions start at one."""
    with pytest.raises(ValidationError):
        SqliteSettings(schema_version=0)


def test_resolve_reads_grouped_component_namespace(tmp_path: Path) -> None:
    """Settings should come from components.substrate.sqlite."""
    root = load_settings(
        cli_params={
            "components": {
                "substrate": {"sqlite": {"database_path": ":memory:", "schema_version": 4}}
            }
        },
        config_path=tmp_path / "missing.yaml",
    )

    resolved = resolve_sqlite_settings(root)

    assert resolved.in_memory is True
    assert resolved.schema_version == 4
