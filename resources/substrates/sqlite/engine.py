"""SQLAlchemy engine and session helpers for the SQLite local store."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from resources.substrates.sqlite.config import SqliteSettings


def create_sqlite_engine(config: SqliteSettings) -> Engine:
    """Construct a configured SQLAlchemy engine, creating parent directories."""
    connect_args = {
        "timeout": float(config.busy_timeout_seconds),
        "check_same_thread": False,
    }
    if config.in_memory:
        # One shared connection, otherwise every checkout sees an empty database.
        return create_engine(
            config.url,
            echo=config.echo,
            connect_args=connect_args,
            poolclass=StaticPool,
        )

    Path(config.database_path).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(config.url, echo=config.echo, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to the provided SQLAlchemy engine."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def transactional_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Yield a session and enforce commit/rollback semantics."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
