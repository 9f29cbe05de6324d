"""
Database connection management for the time tracker.

Provides the store handle: the engine and session factory created once at
startup and shared by reference with every component that talks to the store.
"""
import logging
from dataclasses import dataclass

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreHandle:
    """Process-wide connection to the backing store."""

    engine: Engine
    session_factory: sessionmaker

    def session(self) -> Session:
        return self.session_factory()

    def dispose(self):
        self.engine.dispose()


def _engine_options(database_url: str, timeout: float) -> dict:
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False, "timeout": timeout}}
        # An in-memory database only exists on its single connection
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            options["poolclass"] = StaticPool
        return options
    return {"pool_pre_ping": True, "pool_timeout": timeout}


def _enable_sqlite_foreign_keys(engine: Engine):
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Enable foreign key constraints for SQLite connections."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# PUBLIC_INTERFACE
def create_store(settings: Settings) -> StoreHandle:
    """
    Create the store handle.

    Args:
        settings: Process settings carrying the database URL and timeouts

    Returns:
        StoreHandle: Engine and session factory bound to it
    """
    engine = create_engine(
        settings.database_url,
        echo=settings.sql_echo,
        **_engine_options(settings.database_url, settings.store_timeout_seconds),
    )
    if engine.dialect.name == "sqlite":
        _enable_sqlite_foreign_keys(engine)

    session_factory = sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)
    logger.info(f"Store handle created for dialect '{engine.dialect.name}'")
    return StoreHandle(engine=engine, session_factory=session_factory)
