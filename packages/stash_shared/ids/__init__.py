"""Shared ULID primitives for locally assigned identifiers."""

from .ulid import MonotonicUlid, generate_ulid_str, new_id, ulid_timestamp_ms

__all__ = ["MonotonicUlid", "generate_ulid_str", "new_id", "ulid_timestamp_ms"]
