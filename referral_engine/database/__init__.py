"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from referral_engine.core.config import settings

logger = logging.getLogger(__name__)

_DEFAULT_POOL_KWARGS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 5,
    "pool_recycle": 300,
    "pool_pre_ping": True,
}


def _is_sqlite(db_url: str) -> bool:
    return db_url.startswith("sqlite")


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Pool settings per dialect; SQLite gets a single shared connection when in memory."""

    if not _is_sqlite(db_url):
        return dict(_DEFAULT_POOL_KWARGS)

    kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in db_url or db_url in {"sqlite://", "sqlite:///"}:
        kwargs["poolclass"] = StaticPool
    return kwargs


def _enable_sqlite_savepoints(target: Engine) -> None:
    """
    Let SQLAlchemy own BEGIN on pysqlite so SAVEPOINT works.

    The conditional inserts run inside ``Session.begin_nested()``; the stock
    pysqlite driver would otherwise emit its own BEGIN and break nesting.
    """

    @event.listens_for(target, "connect")
    def _sqlite_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(target, "begin")
    def _sqlite_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


def build_engine(db_url: str, *, echo: bool = False) -> Engine:
    """Create an engine for ``db_url`` with the dialect hooks this package relies on."""

    new_engine = create_engine(db_url, echo=echo, future=True, **_build_engine_kwargs(db_url))
    if _is_sqlite(db_url):
        _enable_sqlite_savepoints(new_engine)

    @event.listens_for(new_engine, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        connection_record.info["connect_time"] = datetime.now()
        logger.debug("Database connection established")

    return new_engine


engine: Engine = build_engine(settings.database_url, echo=settings.database_echo)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context-managed session for Celery tasks and CLI entry points."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(target: Engine | None = None) -> None:
    """Create all tables on ``target`` (defaults to the configured engine)."""
    # Import models so they register on Base.metadata
    from referral_engine import models  # noqa: F401

    Base.metadata.create_all(bind=target or engine)


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "engine",
    "get_db",
    "get_db_session",
    "init_db",
]
