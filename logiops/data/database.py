"""
Database engine and session management.

SQLAlchemy 2.0 style: one ``Base`` for all tables, a ``sessionmaker`` bound to
an engine built from ``DATABASE_URL``.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from logiops.core.config import EnvironmentSettings


class Base(DeclarativeBase):
    pass


def create_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """
    Build an engine for the given URL.

    In-memory SQLite URLs share a single connection so every session sees the
    same database.
    """
    kwargs: dict = {"echo": echo, "future": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def create_engine_from_settings(settings: EnvironmentSettings) -> Engine:
    return create_engine_from_url(settings.database_url)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    # Import for side effects: registers tables on Base.metadata
    from logiops.data import tables  # noqa: F401

    Base.metadata.create_all(engine)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """Transactional scope: commit on success, roll back on error."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
