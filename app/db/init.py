"""Initialize database tables."""
from typing import Optional
import logging

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

# Imported so their tables are registered on SQLModel.metadata
from app.models.repeating_rule import RepeatingRule  # noqa: F401
from app.models.task import Task  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(bind: Optional[Engine] = None):
    """Create all tables in the database (existing tables are kept)."""
    if bind is None:
        from app.db.config import engine as bind

    logger.info("[DB INIT] Creating all tables...")
    SQLModel.metadata.create_all(bind)
    logger.info("[DB INIT] Tables created successfully.")


if __name__ == "__main__":
    init_db()
