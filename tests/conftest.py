"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from dm_engine.config import Settings
from dm_engine.db import adapter_for_engine, create_db_engine, ensure_schema


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Provide settings pointing at a throwaway SQLite file."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'dm.sqlite3'}",
        log_level="DEBUG",
        debug=True,
    )


@pytest.fixture
def engine(settings):
    """Provide an engine bound to the test database."""
    engine = create_db_engine(settings)
    yield engine
    engine.dispose()


@pytest.fixture
def adapter(engine):
    return adapter_for_engine(engine)


@pytest.fixture
def store(engine, adapter):
    """Provide an engine whose schema has been created."""
    ensure_schema(engine, adapter)
    return engine


@pytest.fixture
def threads(store, adapter):
    from dm_engine.threads import ThreadRepository

    return ThreadRepository(store, adapter)


@pytest.fixture
def messages(store, adapter):
    from dm_engine.messages import MessageRepository

    return MessageRepository(store, adapter)


@pytest.fixture
def projector(store, adapter):
    from dm_engine.inbox import InboxProjector

    return InboxProjector(store, adapter)


@pytest.fixture
def blocks(store, adapter):
    from dm_engine.blocks import BlockRepository

    return BlockRepository(store, adapter)


@pytest.fixture
def service(store, adapter, settings):
    """Provide a messaging service over the initialized test database."""
    from dm_engine.service import MessagingService

    return MessagingService(store, adapter, settings=settings)


@pytest.fixture
def count_rows(store):
    """Provide a helper counting the rows of a table."""

    def _count(table: str) -> int:
        with store.connect() as conn:
            return int(conn.exec_driver_sql(f"SELECT COUNT(*) FROM {table}").scalar())

    return _count
