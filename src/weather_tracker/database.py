"""Database utilities and session management."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import DatabaseConfig
from .logging_setup import get_logger
from .models import Base

LOGGER = get_logger(__name__)


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore[no-redef]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()


def _is_sqlite_memory(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


def create_engine_from_config(config: DatabaseConfig) -> Engine:
    """Create a SQLAlchemy engine and verify it can connect."""

    kwargs: dict[str, object] = {"echo": config.echo, "future": True}
    if _is_sqlite_memory(config.url):
        # every session has to see the same in-memory database
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_pre_ping"] = True

    engine = create_engine(config.url, **kwargs)
    _enable_sqlite_foreign_keys(engine)

    @retry(
        retry=retry_if_exception_type(OperationalError),
        stop=stop_after_attempt(config.retry_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    def _ping() -> None:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    _ping()
    if config.create_schema:
        Base.metadata.create_all(engine)
    LOGGER.info("database.engine_ready", dialect=engine.dialect.name)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a session factory for the given engine."""

    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "create_engine_from_config",
    "create_session_factory",
    "session_scope",
]
