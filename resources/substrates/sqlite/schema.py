"""Collection declarations and SQLAlchemy tables for the local store.

Each collection is one table: a primary key column, the full document as JSON
text, and one typed column per declared secondary index. Index columns are
derived from the document on every write, so they never drift from it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Mapping

from sqlalchemy import (
    Column,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)

from packages.stash_shared.clock import parse_timestamp

META_TABLE_NAME = "store_meta"


class IndexKind(StrEnum):
    """Storage type of one secondary index column."""

    STRING = "string"
    TIMESTAMP = "timestamp"
    INTEGER = "integer"


@dataclass(frozen=True)
class IndexSpec:
    """Secondary index derived from one top-level document field."""

    name: str
    kind: IndexKind = IndexKind.STRING
    unique: bool = False

    def coerce(self, value: Any) -> str | float | int | None:
        """Convert one document or query value into its column value."""
        if value is None:
            return None
        if self.kind is IndexKind.TIMESTAMP:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return float(value)
            parsed = parse_timestamp(value)
            if parsed is None:
                raise ValueError(f"index {self.name!r} expects a timestamp, got {value!r}")
            return parsed.timestamp()
        if self.kind is IndexKind.INTEGER:
            return int(value)
        if isinstance(value, StrEnum):
            return value.value
        return str(value)


@dataclass(frozen=True)
class CollectionSpec:
    """Declaration of one keyed collection and its secondary indexes."""

    name: str
    key: str = "id"
    auto_increment: bool = False
    indexes: tuple[IndexSpec, ...] = field(default_factory=tuple)

    def index(self, name: str) -> IndexSpec:
        for candidate in self.indexes:
            if candidate.name == name:
                return candidate
        raise ValueError(f"collection {self.name!r} has no index {name!r}")

    def index_values(self, document: Mapping[str, Any]) -> dict[str, Any]:
        return {spec.name: spec.coerce(document.get(spec.name)) for spec in self.indexes}


USERS = CollectionSpec(
    name="users",
    indexes=(
        IndexSpec("email", unique=True),
        IndexSpec("last_sync_at", IndexKind.TIMESTAMP),
    ),
)

PENDING_OPERATIONS = CollectionSpec(
    name="pending_operations",
    indexes=(
        IndexSpec("enqueued_at", IndexKind.TIMESTAMP),
        IndexSpec("priority"),
    ),
)

SECURITY_LOGS = CollectionSpec(
    name="security_logs",
    auto_increment=True,
    indexes=(
        IndexSpec("user_id"),
        IndexSpec("timestamp", IndexKind.TIMESTAMP),
    ),
)

DEAD_LETTERS = CollectionSpec(
    name="dead_letters",
    indexes=(IndexSpec("dead_lettered_at", IndexKind.TIMESTAMP),),
)

DEFAULT_COLLECTIONS: tuple[CollectionSpec, ...] = (
    USERS,
    PENDING_OPERATIONS,
    SECURITY_LOGS,
    DEAD_LETTERS,
)

_COLUMN_TYPES = {
    IndexKind.STRING: String,
    IndexKind.TIMESTAMP: Float,
    IndexKind.INTEGER: Integer,
}


def build_meta_table(metadata: MetaData) -> Table:
    """Declare the table recording database name and schema version."""
    return Table(
        META_TABLE_NAME,
        metadata,
        Column("name", String, primary_key=True),
        Column("version", Integer, nullable=False),
        Column("upgraded_at", Float, nullable=False),
    )


def build_collection_table(metadata: MetaData, spec: CollectionSpec) -> Table:
    """Declare one collection table with its typed index columns."""
    if spec.auto_increment:
        key_column = Column("key", Integer, primary_key=True, autoincrement=True)
    else:
        key_column = Column("key", String, primary_key=True)

    columns: list[Any] = [key_column, Column("document", Text, nullable=False)]
    for index in spec.indexes:
        columns.append(Column(f"ix_{index.name}", _COLUMN_TYPES[index.kind], nullable=True))

    table = Table(spec.name, metadata, *columns, sqlite_autoincrement=spec.auto_increment)
    for index in spec.indexes:
        Index(
            f"ix_{spec.name}_{index.name}",
            table.c[f"ix_{index.name}"],
            unique=index.unique,
        )
    return table
