"""Unit tests for schema bootstrap."""

import pytest
from sqlalchemy.exc import IntegrityError

from dm_engine.db import SCHEMA_VERSION, ensure_schema
from dm_engine.db.dialect import MySQLAdapter, PostgresAdapter
from dm_engine.db.schema import schema_statements
from dm_engine.exceptions import ConfigurationError


def _tables(engine) -> set[str]:
    with engine.connect() as conn:
        rows = conn.exec_driver_sql("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {row[0] for row in rows}


def test_ensure_schema_creates_tables(engine, adapter) -> None:
    ensure_schema(engine, adapter)

    assert {"_schema_meta", "threads", "thread_state", "messages", "user_blocks"} <= _tables(engine)


def test_ensure_schema_is_idempotent(engine, adapter) -> None:
    ensure_schema(engine, adapter)
    ensure_schema(engine, adapter)

    with engine.connect() as conn:
        version = conn.exec_driver_sql(
            "SELECT meta_value FROM _schema_meta WHERE meta_key = 'schema_version'"
        ).scalar()
    assert int(version) == SCHEMA_VERSION


def test_ensure_schema_rejects_other_version(engine, adapter) -> None:
    ensure_schema(engine, adapter)
    with engine.begin() as conn:
        conn.exec_driver_sql(
            "UPDATE _schema_meta SET meta_value = '99' WHERE meta_key = 'schema_version'"
        )

    with pytest.raises(ConfigurationError, match="schema version 99"):
        ensure_schema(engine, adapter)


def test_thread_pair_is_unique(store) -> None:
    with store.begin() as conn:
        conn.exec_driver_sql(
            "INSERT INTO threads (participant_low, participant_high, created_at) "
            "VALUES (1, 2, CURRENT_TIMESTAMP)"
        )

    with pytest.raises(IntegrityError):
        with store.begin() as conn:
            conn.exec_driver_sql(
                "INSERT INTO threads (participant_low, participant_high, created_at) "
                "VALUES (1, 2, CURRENT_TIMESTAMP)"
            )


def test_thread_state_is_unique_per_user(store) -> None:
    with pytest.raises(IntegrityError):
        with store.begin() as conn:
            conn.exec_driver_sql(
                "INSERT INTO threads (participant_low, participant_high, created_at) "
                "VALUES (1, 2, CURRENT_TIMESTAMP)"
            )
            for _ in range(2):
                conn.exec_driver_sql(
                    "INSERT INTO thread_state (thread_id, user_id) VALUES (1, 1)"
                )


def test_unordered_pair_rejected_by_check(store) -> None:
    with pytest.raises(IntegrityError):
        with store.begin() as conn:
            conn.exec_driver_sql(
                "INSERT INTO threads (participant_low, participant_high, created_at) "
                "VALUES (5, 2, CURRENT_TIMESTAMP)"
            )


class TestServerDDL:
    """DDL text rendered for the client/server dialects."""

    def test_postgres_uses_separate_indexes(self) -> None:
        statements = schema_statements(PostgresAdapter())

        assert any("BIGSERIAL PRIMARY KEY" in s for s in statements)
        assert (
            "CREATE INDEX IF NOT EXISTS idx_messages_thread ON messages (thread_id, id)"
            in statements
        )

    def test_mysql_inlines_indexes(self) -> None:
        statements = schema_statements(MySQLAdapter())

        assert len(statements) == 4
        assert not any(s.startswith("CREATE INDEX") for s in statements)
        assert all(s.endswith("ENGINE=InnoDB DEFAULT CHARSET=utf8mb4") for s in statements)
        assert any("INDEX idx_thread_state_user (user_id, deleted)" in s for s in statements)
        assert any("TINYINT(1) NOT NULL DEFAULT 0" in s for s in statements)
