"""SQLAlchemy engine singleton and session helpers."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from subtitle_translator import config_manager as cfg

from .models import Base

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def get_database_url() -> str:
    return cfg.get_settings().resolved_database_url()


def build_engine(url: str) -> Engine:
    """Create an engine for ``url``; SQLite URLs get thread-safe connection settings."""

    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if url in {"sqlite://", "sqlite:///:memory:"}:
            # One shared connection keeps the in-memory database alive.
            options["poolclass"] = StaticPool
        return create_engine(url, echo=False, **options)
    return create_engine(
        url,
        pool_size=5,
        max_overflow=5,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=False,
    )


def create_session_factory(url: Optional[str] = None) -> sessionmaker[Session]:
    """Return a session factory bound to a fresh engine with all tables created."""

    engine = build_engine(url or get_database_url())
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = build_engine(get_database_url())
        Base.metadata.create_all(_engine)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _session_factory


@contextmanager
def get_db_session(factory: Optional[sessionmaker[Session]] = None) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def dispose_engine() -> None:
    """Dispose the global engine and clear the factory."""

    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


__all__ = [
    "build_engine",
    "create_session_factory",
    "dispose_engine",
    "get_database_url",
    "get_db_session",
    "get_engine",
    "get_session_factory",
]
