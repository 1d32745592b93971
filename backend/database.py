"""Database setup and session management."""

import logging
from functools import lru_cache

from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def _enable_sqlite_foreign_keys(engine) -> None:
    """Register a ``connect`` listener that turns on FK enforcement."""

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(database_url: str):
    """Create an engine for ``database_url`` with the app's SQLite tweaks."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine = create_engine(database_url, connect_args=connect_args, echo=False)
    if database_url.startswith("sqlite"):
        _enable_sqlite_foreign_keys(engine)
    return engine


@lru_cache
def get_engine():
    """Get or create the database engine (cached)."""
    engine = build_engine(settings.DATABASE_URL)
    logger.info("Database engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


def get_session_local():
    """Get a sessionmaker bound to the engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db():
    """Dependency that provides a database session.

    Transaction conventions:
    - Default: services ``flush()``, API layer ``commit()``
    - Token and listing state changes are conditional ``UPDATE`` statements
      checked by ``rowcount`` so concurrent writers cannot both succeed.
    - AwardService commits internally: the token lease must be visible
      before the chain call, and depletion events fire after the commit.
    """
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
