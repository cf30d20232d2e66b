"""Storage-agnostic contract for the durable offline local store."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Protocol

from pydantic import BaseModel, ConfigDict

RecordKey = str | int
Document = dict[str, Any]


class StoreHealthStatus(BaseModel):
    """Local store readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ready: bool
    detail: str


class StoreStats(BaseModel):
    """Record counts per collection and an approximate on-disk payload size."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    counts: dict[str, int]
    approx_size_bytes: int
    measured_at: datetime


class LocalStore(Protocol):
    """Protocol for keyed, indexed document persistence.

    Every call runs in its own transaction. Reads return ``None`` or an empty
    list on absence instead of raising.
    """

    def initialize(self) -> None:
        """Open the database, creating or upgrading collections as needed."""

    def close(self) -> None:
        """Release database resources; the store becomes uninitialized."""

    def put(self, collection: str, record: Mapping[str, Any]) -> RecordKey:
        """Upsert one record by primary key and return its key."""

    def get(self, collection: str, key: RecordKey) -> Document | None:
        """Return one record by key or ``None`` when missing."""

    def get_all(self, collection: str) -> list[Document]:
        """Return every record of one collection in key order."""

    def get_by_index(self, collection: str, index: str, value: Any) -> list[Document]:
        """Return records whose secondary index equals ``value``."""

    def delete(self, collection: str, key: RecordKey) -> bool:
        """Delete one record and return whether it existed."""

    def purge_older_than(self, collection: str, index: str, cutoff: datetime) -> int:
        """Delete records whose timestamp index is at or before ``cutoff``."""

    def clear(self) -> None:
        """Remove every record from every collection."""

    def stats(self) -> StoreStats:
        """Return per-collection counts and approximate payload size."""

    def health(self) -> StoreHealthStatus:
        """Probe store readiness."""
