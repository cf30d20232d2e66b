"""SQLAlchemy-backed local store implementation over SQLite."""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import Engine, MetaData, Table, delete, func, insert, select, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from packages.stash_shared.clock import Clock, SystemClock
from packages.stash_shared.errors import NotInitializedError, StorageUnavailableError
from packages.stash_shared.logging import get_logger, log_context
from resources.substrates.sqlite.config import SqliteSettings
from resources.substrates.sqlite.engine import (
    create_session_factory,
    create_sqlite_engine,
    transactional_session,
)
from resources.substrates.sqlite.errors import normalize_sqlite_error
from resources.substrates.sqlite.schema import (
    DEFAULT_COLLECTIONS,
    CollectionSpec,
    build_collection_table,
    build_meta_table,
)
from resources.substrates.sqlite.substrate import (
    Document,
    LocalStore,
    RecordKey,
    StoreHealthStatus,
    StoreStats,
)

_LOGGER = get_logger(__name__)


class SqliteLocalStore(LocalStore):
    """Concrete local store keeping one SQLite table per collection."""

    def __init__(
        self,
        *,
        settings: SqliteSettings,
        collections: Sequence[CollectionSpec] = DEFAULT_COLLECTIONS,
        clock: Clock | None = None,
    ) -> None:
        self._settings = settings
        self._clock = clock or SystemClock()
        self._metadata = MetaData()
        self._meta_table = build_meta_table(self._metadata)
        self._specs = {spec.name: spec for spec in collections}
        self._tables = {
            spec.name: build_collection_table(self._metadata, spec)
            for spec in collections
        }
        self._engine: Engine | None = None
        self._sessions: sessionmaker[Session] | None = None

    @property
    def initialized(self) -> bool:
        return self._sessions is not None

    @property
    def collections(self) -> tuple[str, ...]:
        return tuple(self._specs)

    def initialize(self) -> None:
        """Open the database, creating or upgrading collections as needed.

        Calling this on an open store is a no-op. A database whose recorded
        schema version is newer than the configured one is refused.
        """
        if self._sessions is not None:
            return
        try:
            engine = create_sqlite_engine(self._settings)
        except (SQLAlchemyError, OSError) as exc:
            raise normalize_sqlite_error(exc) from exc

        try:
            self._upgrade(engine)
        except Exception:
            engine.dispose()
            raise

        self._engine = engine
        self._sessions = create_session_factory(engine)

    def close(self) -> None:
        """Dispose the engine; later calls raise ``NotInitializedError``."""
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._sessions = None

    def put(self, collection: str, record: Mapping[str, Any]) -> RecordKey:
        """Upsert one record by primary key and return its key.

        Auto-increment collections assign a key when the record carries none.
        """
        spec, table = self._collection(collection)
        document = dict(record)
        index_values = {
            f"ix_{name}": value for name, value in spec.index_values(document).items()
        }
        key = document.get(spec.key)

        if spec.auto_increment and key is None:
            document.pop(spec.key, None)
            payload = _dump(document, collection)
            with self._transaction(collection) as session:
                result = session.execute(
                    insert(table).values(document=payload, **index_values)
                )
                return int(result.inserted_primary_key[0])

        if key is None or key == "":
            raise ValueError(f"{collection} record requires a {spec.key!r} value")
        resolved_key: RecordKey = int(key) if spec.auto_increment else str(key)
        document[spec.key] = resolved_key
        payload = _dump(document, collection)
        statement = sqlite_insert(table).values(
            key=resolved_key, document=payload, **index_values
        )
        statement = statement.on_conflict_do_update(
            index_elements=[table.c.key],
            set_={"document": payload, **index_values},
        )
        with self._transaction(collection) as session:
            session.execute(statement)
        return resolved_key

    def get(self, collection: str, key: RecordKey) -> Document | None:
        """Return one record by key or ``None`` when missing."""
        spec, table = self._collection(collection)
        resolved_key = _coerce_key(spec, key)
        if resolved_key is None:
            return None
        with self._transaction(collection) as session:
            row = (
                session.execute(select(table).where(table.c.key == resolved_key))
                .mappings()
                .one_or_none()
            )
        return None if row is None else _load(spec, row)

    def get_all(self, collection: str) -> list[Document]:
        """Return every record of one collection in key order."""
        spec, table = self._collection(collection)
        with self._transaction(collection) as session:
            rows = session.execute(select(table).order_by(table.c.key)).mappings().all()
        return [_load(spec, row) for row in rows]

    def get_by_index(self, collection: str, index: str, value: Any) -> list[Document]:
        """Return records whose secondary index equals ``value``, in key order."""
        spec, table = self._collection(collection)
        column = table.c[f"ix_{spec.index(index).name}"]
        coerced = spec.index(index).coerce(value)
        condition = column.is_(None) if coerced is None else column == coerced
        with self._transaction(collection) as session:
            rows = (
                session.execute(select(table).where(condition).order_by(table.c.key))
                .mappings()
                .all()
            )
        return [_load(spec, row) for row in rows]

    def delete(self, collection: str, key: RecordKey) -> bool:
        """Delete one record; deleting a missing key is not an error."""
        spec, table = self._collection(collection)
        resolved_key = _coerce_key(spec, key)
        if resolved_key is None:
            return False
        with self._transaction(collection) as session:
            result = session.execute(delete(table).where(table.c.key == resolved_key))
        return bool(result.rowcount)

    def purge_older_than(self, collection: str, index: str, cutoff: datetime) -> int:
        """Delete records whose timestamp index is at or before ``cutoff``."""
        spec, table = self._collection(collection)
        column = table.c[f"ix_{spec.index(index).name}"]
        bound = spec.index(index).coerce(cutoff)
        with self._transaction(collection) as session:
            keys = (
                session.execute(
                    select(table.c.key).where(column <= bound).order_by(column)
                )
                .scalars()
                .all()
            )
            if keys:
                session.execute(delete(table).where(table.c.key.in_(keys)))

        if keys:
            with log_context({"collection": collection, "purged": len(keys)}):
                _LOGGER.info("Purged records older than cutoff")
        return len(keys)

    def clear(self) -> None:
        """Remove every record from every collection."""
        with self._transaction("*") as session:
            for table in self._tables.values():
                session.execute(delete(table))

    def stats(self) -> StoreStats:
        """Return per-collection counts and approximate payload size.

        Size is the summed length of the serialized documents, not file size.
        """
        counts: dict[str, int] = {}
        size = 0
        with self._transaction("*") as session:
            for name, table in self._tables.items():
                count, length = session.execute(
                    select(
                        func.count(),
                        func.coalesce(func.sum(func.length(table.c.document)), 0),
                    ).select_from(table)
                ).one()
                counts[name] = int(count)
                size += int(length)
        return StoreStats(
            counts=counts,
            approx_size_bytes=size,
            measured_at=self._clock.now(),
        )

    def health(self) -> StoreHealthStatus:
        """Return store readiness and concise detail."""
        if self._engine is None:
            return StoreHealthStatus(ready=False, detail="local store not initialized")
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except Exception as exc:  # noqa: BLE001
            return StoreHealthStatus(
                ready=False,
                detail=f"local store probe failed: {type(exc).__name__}",
            )
        return StoreHealthStatus(ready=True, detail="ok")

    def _upgrade(self, engine: Engine) -> None:
        """Create or upgrade collections when the stored version is older."""
        name = self._settings.database_name
        target = self._settings.schema_version
        meta = self._meta_table
        try:
            with transactional_session(create_session_factory(engine)) as session:
                connection = session.connection()
                meta.create(bind=connection, checkfirst=True)
                stored = session.execute(
                    select(meta.c.version).where(meta.c.name == name)
                ).scalar_one_or_none()

                if stored is not None and stored > target:
                    raise StorageUnavailableError(
                        message=(
                            f"local store {name!r} is at schema version {stored}, "
                            f"newer than supported version {target}"
                        )
                    )
                if stored is not None and stored == target:
                    return

                self._metadata.create_all(bind=connection, checkfirst=True)
                upgraded_at = self._clock.now().timestamp()
                session.execute(
                    sqlite_insert(meta)
                    .values(name=name, version=target, upgraded_at=upgraded_at)
                    .on_conflict_do_update(
                        index_elements=[meta.c.name],
                        set_={"version": target, "upgraded_at": upgraded_at},
                    )
                )
        except SQLAlchemyError as exc:
            raise normalize_sqlite_error(exc) from exc

        with log_context(
            {"database": name, "from_version": stored or 0, "to_version": target}
        ):
            _LOGGER.info("Local store schema upgraded")

    def _collection(self, name: str) -> tuple[CollectionSpec, Table]:
        if self._sessions is None:
            raise NotInitializedError(
                message="local store used before initialize()"
            )
        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"unknown collection: {name!r}")
        return spec, self._tables[name]

    @contextmanager
    def _transaction(self, collection: str) -> Iterator[Session]:
        if self._sessions is None:
            raise NotInitializedError(
                message="local store used before initialize()"
            )
        try:
            with transactional_session(self._sessions) as session:
                yield session
        except SQLAlchemyError as exc:
            raise normalize_sqlite_error(exc, collection=collection) from exc


def _dump(document: Mapping[str, Any], collection: str) -> str:
    try:
        return json.dumps(document, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{collection} record is not JSON serializable: {exc}") from exc


def _load(spec: CollectionSpec, row: Mapping[str, Any]) -> Document:
    document = json.loads(row["document"])
    document[spec.key] = row["key"]
    return document


def _coerce_key(spec: CollectionSpec, key: RecordKey) -> RecordKey | None:
    if not spec.auto_increment:
        return str(key)
    try:
        return int(key)
    except (TypeError, ValueError):
        return None
