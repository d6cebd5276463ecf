"""Database engine/session helpers."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from models import Base


def create_db_engine(db_url: str) -> Engine:
    """Create an engine for the statistics store.

    PostgreSQL is the production backend. An in-memory SQLite URL keeps a
    single shared connection so every session sees the same database.
    """
    url = make_url(db_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True, future=True)
    if url.database in (None, "", ":memory:"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
    return create_engine(url, connect_args={"check_same_thread": False}, future=True)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Sessions keep loaded rows usable after commit; pipeline results outlive their transaction."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


def ensure_schema(engine: Engine) -> None:
    """Create every engine table and index that does not exist yet."""
    Base.metadata.create_all(engine)
