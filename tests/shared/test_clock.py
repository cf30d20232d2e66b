"""Tests for shared UTC timestamp helpers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from packages.stash_shared.clock import SystemClock, ensure_utc, format_timestamp, parse_timestamp


def test_format_timestamp_uses_z_suffix() -> None:
    value = datetime(2026, 7, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))

    assert format_timestamp(value) == "2026-07-01T10:00:00Z"


@pytest.mark.parametrize(
    "value",
    ["2026-07-01T10:00:00Z", "2026-07-01T12:00:00+02:00", datetime(2026, 7, 1, 10, tzinfo=UTC)],
)
def test_parse_timestamp_normalizes_to_utc(value: object) -> None:
    assert parse_timestamp(value) == datetime(2026, 7, 1, 10, tzinfo=UTC)


@pytest.mark.parametrize("value", [None, "", "yesterday", 1_700_000_000, {"at": "now"}])
def test_parse_timestamp_rejects_non_timestamps(value: object) -> None:
    assert parse_timestamp(value) is None


def test_naive_values_are_treated_as_utc() -> None:
    assert ensure_utc(datetime(2026, 7, 1, 10)).tzinfo is UTC


def test_system_clock_is_timezone_aware() -> None:
    assert SystemClock().now().utcoffset() == timedelta(0)
