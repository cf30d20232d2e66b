"""Contract for the advisory, non-transactional flag store.

Flags are written by UI collaborators outside the local store. Readers treat
them as hints only: they may be stale, missing or inconsistent with durable
state.
"""

from __future__ import annotations

from typing import Protocol

OFFLINE_STARTED_AT = "offline_started_at"
LAST_FLUSH_ATTEMPT_AT = "last_flush_attempt_at"


class FlagStore(Protocol):
    """Flat string key/value flags."""

    def get(self, key: str) -> str | None:
        """Return one flag value or ``None`` when unset."""

    def set(self, key: str, value: str) -> None:
        """Set one flag value."""

    def delete(self, key: str) -> None:
        """Remove one flag; removing an unset flag is a no-op."""
