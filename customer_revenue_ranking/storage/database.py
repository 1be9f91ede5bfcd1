"""Database engine construction and connectivity checks."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from customer_revenue_ranking.config import Settings
from customer_revenue_ranking.storage.errors import DatabaseUnavailableError

logger = logging.getLogger(__name__)

# Pool sizing: 5 persistent connections, up to 25 open, recycled after 5 minutes
POOL_SIZE = 5
MAX_OVERFLOW = 20
POOL_RECYCLE_SECONDS = 300

_VERSION_QUERIES = {
    "mysql": "SELECT VERSION()",
    "postgresql": "SELECT version()",
    "sqlite": "SELECT sqlite_version()",
}


def create_db_engine(settings: Settings) -> Engine:
    """Create a SQLAlchemy engine for the configured database."""
    url = make_url(settings.sqlalchemy_url())
    options: dict[str, object] = {"pool_pre_ping": True}
    if url.get_backend_name() != "sqlite":
        options.update(
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_recycle=POOL_RECYCLE_SECONDS,
        )
    return create_engine(url, **options)


def health_check(engine: Engine) -> None:
    """Run a trivial query, raising :class:`DatabaseUnavailableError` on failure."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise DatabaseUnavailableError(f"Database health check failed: {exc}") from exc


def server_version(engine: Engine) -> Optional[str]:
    """Return the database server version, or ``None`` if it cannot be queried."""
    query = _VERSION_QUERIES.get(engine.dialect.name)
    if query is None:
        return None
    try:
        with engine.connect() as conn:
            return str(conn.execute(text(query)).scalar_one())
    except SQLAlchemyError as exc:
        logger.warning(f"Could not query server version: {exc}")
        return None
