"""Tests for advisory flag store implementations."""

from __future__ import annotations

from pathlib import Path

from resources.adapters.flags import (
    OFFLINE_STARTED_AT,
    InMemoryFlagStore,
    JsonFileFlagStore,
)


def test_in_memory_flags_set_get_delete() -> None:
    """In-memory flags should behave like a plain mapping."""
    flags = InMemoryFlagStore()
    flags.set(OFFLINE_STARTED_AT, "2026-01-01T00:00:00Z")

    assert flags.get(OFFLINE_STARTED_AT) == "2026-01-01T00:00:00Z"
    flags.delete(OFFLINE_STARTED_AT)
    flags.delete(OFFLINE_STARTED_AT)
    assert flags.get(OFFLINE_STARTED_AT) is None


def test_json_file_flags_persist_across_instances(tmp_path: Path) -> None:
    """File-backed flags should survive a new store instance."""
    path = tmp_path / "state" / "flags.json"
    JsonFileFlagStore(path=path).set("a", "1")

    assert JsonFileFlagStore(path=path).get("a") == "1"


def test_json_file_flags_treat_corrupt_file_as_empty(tmp_path: Path) -> None:
    """A corrupt flag file should read as empty and be repaired on write."""
    path = tmp_path / "flags.json"
    path.write_text("{not json", encoding="utf-8")
    flags = JsonFileFlagStore(path=path)

    assert flags.get("a") is None
    flags.set("a", "2")
    assert flags.get("a") == "2"
