"""Schema bootstrap for the thread store.

Creates the tables idempotently for whichever dialect the adapter targets and
records a schema version in ``_schema_meta`` so a store created by an
incompatible version is refused at startup rather than misread.
"""

from __future__ import annotations

import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from dm_engine.db.dialect import DialectAdapter
from dm_engine.exceptions import ConfigurationError, StoreError

logger = structlog.get_logger()


SCHEMA_VERSION = 1

_SCHEMA_VERSION_KEY = "schema_version"


def _table(adapter: DialectAdapter, name: str, body: list[str], indexes: list[tuple[str, str]]) -> list[str]:
    """Render CREATE TABLE plus its indexes for the adapter's dialect."""

    lines = list(body)
    statements: list[str] = []
    if adapter.inline_indexes:
        lines.extend(f"INDEX {index_name} ({columns})" for index_name, columns in indexes)
    else:
        statements.extend(
            f"CREATE INDEX IF NOT EXISTS {index_name} ON {name} ({columns})"
            for index_name, columns in indexes
        )

    columns_sql = ",\n    ".join(lines)
    create = f"CREATE TABLE IF NOT EXISTS {name} (\n    {columns_sql}\n){adapter.table_options}"
    return [create, *statements]


def schema_statements(adapter: DialectAdapter) -> list[str]:
    """Return the DDL statements creating the store, in dependency order."""

    big = adapter.bigint_type
    ts = adapter.timestamp_type
    flag = f"{adapter.bool_type} NOT NULL DEFAULT {adapter.false_literal}"

    statements: list[str] = []
    statements += _table(
        adapter,
        "threads",
        [
            f"id {adapter.id_column}",
            f"participant_low {big} NOT NULL",
            f"participant_high {big} NOT NULL",
            f"created_at {ts} NOT NULL",
            f"last_message_id {big} NULL",
            f"last_message_at {ts} NULL",
            "CONSTRAINT uq_threads_participants UNIQUE (participant_low, participant_high)",
            "CONSTRAINT ck_threads_ordered CHECK (participant_low < participant_high)",
        ],
        [],
    )
    statements += _table(
        adapter,
        "thread_state",
        [
            f"thread_id {big} NOT NULL",
            f"user_id {big} NOT NULL",
            f"last_read_message_id {big} NULL",
            f"archived {flag}",
            f"muted {flag}",
            f"deleted {flag}",
            "folder VARCHAR(255) NULL",
            f"updated_at {ts} NULL",
            "CONSTRAINT uq_thread_state_thread_user UNIQUE (thread_id, user_id)",
            "CONSTRAINT fk_thread_state_thread FOREIGN KEY (thread_id) REFERENCES threads (id)",
        ],
        [("idx_thread_state_user", "user_id, deleted")],
    )
    statements += _table(
        adapter,
        "messages",
        [
            f"id {adapter.id_column}",
            f"thread_id {big} NOT NULL",
            f"sender_id {big} NOT NULL",
            "body TEXT NOT NULL",
            f"created_at {ts} NOT NULL",
            "CONSTRAINT fk_messages_thread FOREIGN KEY (thread_id) REFERENCES threads (id)",
        ],
        [("idx_messages_thread", "thread_id, id")],
    )
    statements += _table(
        adapter,
        "user_blocks",
        [
            f"blocker_id {big} NOT NULL",
            f"blocked_id {big} NOT NULL",
            f"created_at {ts} NOT NULL",
            "CONSTRAINT uq_user_blocks_pair UNIQUE (blocker_id, blocked_id)",
        ],
        [],
    )
    return statements


def _meta_table(adapter: DialectAdapter) -> str:
    return (
        "CREATE TABLE IF NOT EXISTS _schema_meta (\n"
        "    meta_key VARCHAR(64) PRIMARY KEY,\n"
        "    meta_value VARCHAR(255) NOT NULL\n"
        f"){adapter.table_options}"
    )


def _get_schema_version(conn: Connection, adapter: DialectAdapter) -> int | None:
    row = conn.exec_driver_sql(
        adapter.bind("SELECT meta_value FROM _schema_meta WHERE meta_key = ?"),
        (_SCHEMA_VERSION_KEY,),
    ).first()
    if row is None:
        return None
    return int(row[0])


def _set_schema_version(conn: Connection, adapter: DialectAdapter, version: int) -> None:
    stmt = adapter.create_if_absent(
        "INSERT INTO _schema_meta (meta_key, meta_value) VALUES (?, ?)",
        ("meta_key",),
    )
    conn.exec_driver_sql(adapter.bind(stmt), (_SCHEMA_VERSION_KEY, str(version)))


def ensure_schema(engine: Engine, adapter: DialectAdapter) -> None:
    """Create or verify the store schema.

    Raises:
        ConfigurationError: If the store carries an unsupported schema version.
        StoreError: If the DDL cannot be applied.
    """

    try:
        with engine.begin() as conn:
            conn.exec_driver_sql(_meta_table(adapter))

            current_version = _get_schema_version(conn, adapter)
            if current_version is None:
                for statement in schema_statements(adapter):
                    conn.exec_driver_sql(statement)
                _set_schema_version(conn, adapter, SCHEMA_VERSION)
                logger.info(
                    "dm_schema_created",
                    version=SCHEMA_VERSION,
                    dialect=adapter.dialect.value,
                )
                return
    except SQLAlchemyError as exc:
        logger.error("store_failure", operation="ensure_schema", error=str(exc))
        raise StoreError(f"ensure_schema failed: {exc}") from exc

    if current_version != SCHEMA_VERSION:
        raise ConfigurationError(
            f"Unsupported schema version {current_version}; expected {SCHEMA_VERSION}"
        )
