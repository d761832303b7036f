"""Shared plumbing for the SQL repositories."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy.engine import Connection, CursorResult, Engine
from sqlalchemy.exc import SQLAlchemyError

from dm_engine.db.dialect import DialectAdapter
from dm_engine.exceptions import StoreError

logger = structlog.get_logger()


class SQLRepository:
    """Base class holding an engine and the dialect adapter for it.

    Statements are written with ``?`` placeholders and bound through the
    adapter. Driver and connection errors surface as :class:`StoreError`
    after any open transaction has been rolled back.
    """

    def __init__(self, engine: Engine, adapter: DialectAdapter) -> None:
        """Create a repository.

        Args:
            engine: SQLAlchemy engine bound to the store.
            adapter: Dialect adapter matching ``engine``.
        """

        self._engine = engine
        self._adapter = adapter

    @property
    def adapter(self) -> DialectAdapter:
        return self._adapter

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Connection]:
        """Run a block in one transaction: commit on success, rollback on error."""
        try:
            with self._engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            logger.error("store_failure", operation=operation, error=str(exc))
            raise StoreError(f"{operation} failed: {exc}") from exc

    @contextmanager
    def _connect(self, operation: str) -> Iterator[Connection]:
        """Borrow a connection for read-only statements."""
        try:
            with self._engine.connect() as conn:
                yield conn
        except SQLAlchemyError as exc:
            logger.error("store_failure", operation=operation, error=str(exc))
            raise StoreError(f"{operation} failed: {exc}") from exc

    def _execute(
        self, conn: Connection, sql: str, params: Sequence[Any] = ()
    ) -> CursorResult[Any]:
        bound = self._adapter.bind(sql)
        if params:
            return conn.exec_driver_sql(bound, tuple(params))
        return conn.exec_driver_sql(bound)


def parse_timestamp(value: Any) -> datetime | None:
    """Convert a driver timestamp value to ``datetime``.

    SQLite hands back text (``YYYY-MM-DD HH:MM:SS``); the server drivers
    return ``datetime`` objects already.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, bytes):
        value = value.decode()
    raw = str(value).strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw)


def as_bool(value: Any) -> bool:
    """Interpret a boolean column across dialects (bool, 0/1, '1'/'t')."""

    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, bytes):
        value = value.decode()
    return str(value).strip().lower() in ("1", "t", "true", "y", "yes")


def as_optional_int(value: Any) -> int | None:
    return None if value is None else int(value)
