"""Database engine and session dependency."""
from typing import Generator
import logging

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from app.config import settings

logger = logging.getLogger(__name__)


def _enable_sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite gets cross-thread access plus foreign keys and WAL."""
    if not url.startswith("sqlite"):
        logger.info("[DB CONFIG] Using database: %s", url.split("@")[-1])
        return create_engine(url, echo=False, **kwargs)

    logger.info("[DB CONFIG] Using SQLite database: %s", url)
    sqlite_engine = create_engine(url, echo=False, connect_args={"check_same_thread": False}, **kwargs)
    event.listen(sqlite_engine, "connect", _enable_sqlite_pragmas)
    return sqlite_engine


engine = build_engine(settings.DATABASE_URL)


def get_session() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    with Session(engine) as session:
        yield session
