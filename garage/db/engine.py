import logging
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import InterfaceError, OperationalError

from garage import config
from garage.db.models import Base
from garage.exceptions import StoreConnectionError

logger = logging.getLogger(__name__)


def make_engine(database_url: Optional[str] = None) -> Engine:
    """Create a SQLAlchemy Engine for `database_url`.

    Falls back to `config.database_url()` when no URL is given. The engine is
    not cached here; callers own it and are responsible for disposing it.
    """
    database_url = database_url or config.database_url()
    if not database_url:
        raise RuntimeError("DATABASE_URL not set")
    return create_engine(database_url, future=True)


def check_connection(engine: Engine) -> None:
    """Open and release one connection, raising StoreConnectionError on failure."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except (OperationalError, InterfaceError) as e:
        logger.error("Database at %s is unreachable", engine.url.render_as_string(hide_password=True))
        raise StoreConnectionError(e) from e


def init_orm(engine: Engine) -> None:
    """Create the people, cars and bikes tables if they don't exist."""
    try:
        Base.metadata.create_all(engine)
    except (OperationalError, InterfaceError) as e:
        raise StoreConnectionError(e) from e
    logger.debug("Schema ready: %s", ", ".join(sorted(Base.metadata.tables)))
