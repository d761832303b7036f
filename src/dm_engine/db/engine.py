"""Engine construction for the configured store."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url

from dm_engine.config import Settings

logger = structlog.get_logger()


def _sqlite_on_connect(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA foreign_keys=ON;")
    finally:
        cursor.close()


def create_db_engine(settings: Settings, database_url: str | None = None) -> Engine:
    """Create a SQLAlchemy engine for the configured database.

    Args:
        settings: Application settings.
        database_url: Overrides ``settings.database_url`` when given.

    Returns:
        A pooled engine. SQLite file databases get a busy timeout, WAL
        journaling and foreign key enforcement on every connection.
    """

    url = make_url(database_url or settings.database_url)
    connect_args: dict[str, Any] = {}

    is_sqlite = url.get_backend_name() == "sqlite"
    if is_sqlite:
        connect_args = {
            "check_same_thread": False,
            "timeout": settings.sqlite_busy_timeout,
        }
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, connect_args=connect_args, pool_pre_ping=not is_sqlite)
    if is_sqlite:
        event.listen(engine, "connect", _sqlite_on_connect)

    logger.debug(
        "db_engine_created",
        backend=url.get_backend_name(),
        driver=url.get_driver_name(),
        database=url.database,
    )
    return engine
