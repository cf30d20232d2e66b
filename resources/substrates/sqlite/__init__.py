"""SQLite local store substrate for durable offline state."""

from resources.substrates.sqlite.component import RESOURCE_COMPONENT_ID
from resources.substrates.sqlite.config import SqliteSettings, resolve_sqlite_settings
from resources.substrates.sqlite.schema import (
    DEAD_LETTERS,
    DEFAULT_COLLECTIONS,
    PENDING_OPERATIONS,
    SECURITY_LOGS,
    USERS,
    CollectionSpec,
    IndexKind,
    IndexSpec,
)
from resources.substrates.sqlite.sqlite_substrate import SqliteLocalStore
from resources.substrates.sqlite.substrate import (
    Document,
    LocalStore,
    RecordKey,
    StoreHealthStatus,
    StoreStats,
)

__all__ = [
    "CollectionSpec",
    "DEAD_LETTERS",
    "DEFAULT_COLLECTIONS",
    "Document",
    "IndexKind",
    "IndexSpec",
    "LocalStore",
    "PENDING_OPERATIONS",
    "RESOURCE_COMPONENT_ID",
    "RecordKey",
    "SECURITY_LOGS",
    "SqliteLocalStore",
    "SqliteSettings",
    "StoreHealthStatus",
    "StoreStats",
    "USERS",
    "resolve_sqlite_settings",
]
