"""SQL dialect adapters.

Statements in this package are written once, with ``?`` positional
placeholders, and passed through a :class:`DialectAdapter` before they reach
the driver. The adapter is chosen once per store from a :class:`Dialect` and
owns every dialect-specific piece of text:

- placeholder style of the DB-API driver in use
- the "insert, or do nothing if the unique key already exists" form
- the current-timestamp expression
- how a generated id is read back after an insert
- column types used by the schema bootstrap
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import Enum
from typing import Any

from sqlalchemy.engine import Connection, Engine

from dm_engine.exceptions import ConfigurationError

_INSERT_PREFIX = "INSERT INTO "

PARAMSTYLES = frozenset({"qmark", "format", "pyformat", "numeric", "numeric_dollar"})


class Dialect(str, Enum):
    """Supported SQL dialects."""

    SQLITE = "sqlite"
    POSTGRES = "postgres"
    MYSQL = "mysql"

    @classmethod
    def parse(cls, tag: str) -> Dialect:
        """Resolve a dialect tag or SQLAlchemy backend name.

        Raises:
            ConfigurationError: If the tag is not a supported dialect.
        """
        normalized = (tag or "").strip().lower()
        normalized = _DIALECT_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            raise ConfigurationError(f"Unsupported SQL dialect: {tag!r}") from None


_DIALECT_ALIASES = {
    "sqlite3": "sqlite",
    "postgresql": "postgres",
    "pg": "postgres",
    "mariadb": "mysql",
}


def rewrite_placeholders(sql: str, paramstyle: str) -> str:
    """Rewrite ``?`` placeholders into the given DB-API paramstyle.

    Question marks inside quoted literals are left alone. For the ``format``
    styles a literal ``%`` is doubled, but only when the statement has
    placeholders: drivers interpolate only when parameters are passed.
    """

    if paramstyle == "qmark":
        return sql

    out: list[str] = []
    quote: str | None = None
    index = 0
    percent_styles = paramstyle in ("format", "pyformat")

    for ch in sql:
        if percent_styles and ch == "%":
            out.append("%%")
            continue
        if quote is not None:
            out.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in ("'", '"'):
            quote = ch
            out.append(ch)
            continue
        if ch == "?":
            index += 1
            if percent_styles:
                out.append("%s")
            elif paramstyle == "numeric":
                out.append(f":{index}")
            else:
                out.append(f"${index}")
            continue
        out.append(ch)

    if index == 0:
        return sql
    return "".join(out)


class DialectAdapter(ABC):
    """Strategy translating portable statements into one dialect's SQL."""

    dialect: Dialect
    default_paramstyle: str = "qmark"

    now_sql: str = "CURRENT_TIMESTAMP"

    # Schema bootstrap vocabulary
    id_column: str
    bigint_type: str = "BIGINT"
    bool_type: str = "BOOLEAN"
    false_literal: str = "FALSE"
    timestamp_type: str = "TIMESTAMP"
    table_options: str = ""
    inline_indexes: bool = False

    def __init__(self, paramstyle: str | None = None) -> None:
        style = paramstyle or self.default_paramstyle
        if style not in PARAMSTYLES:
            raise ConfigurationError(f"Unsupported DB-API paramstyle: {style!r}")
        self.paramstyle = style

    def __repr__(self) -> str:
        return f"{type(self).__name__}(paramstyle={self.paramstyle!r})"

    def bind(self, sql: str) -> str:
        """Return ``sql`` with placeholders in the driver's style."""
        return rewrite_placeholders(sql, self.paramstyle)

    @abstractmethod
    def create_if_absent(self, insert_sql: str, conflict_columns: Sequence[str]) -> str:
        """Turn a plain ``INSERT INTO`` into one that ignores unique-key conflicts.

        The resulting statement either inserts the row or silently does
        nothing when a row with the same ``conflict_columns`` exists.
        """

    def insert_returning_id(
        self, conn: Connection, insert_sql: str, params: Sequence[Any]
    ) -> int:
        """Execute an insert and return the generated ``id``."""
        result = conn.exec_driver_sql(self.bind(insert_sql), tuple(params))
        return int(result.lastrowid)

    @staticmethod
    def _strip_insert(insert_sql: str) -> str:
        text = insert_sql.strip()
        if not text.upper().startswith(_INSERT_PREFIX):
            raise ValueError(f"Expected an INSERT INTO statement, got: {text[:40]!r}")
        return text[len(_INSERT_PREFIX):]


class SQLiteAdapter(DialectAdapter):
    """Embedded single-file engine."""

    dialect = Dialect.SQLITE
    default_paramstyle = "qmark"
    now_sql = "CURRENT_TIMESTAMP"

    id_column = "INTEGER PRIMARY KEY AUTOINCREMENT"
    bool_type = "INTEGER"
    false_literal = "0"
    timestamp_type = "TIMESTAMP"

    def create_if_absent(self, insert_sql: str, conflict_columns: Sequence[str]) -> str:
        return "INSERT OR IGNORE INTO " + self._strip_insert(insert_sql)


class PostgresAdapter(DialectAdapter):
    """PostgreSQL client/server engine."""

    dialect = Dialect.POSTGRES
    default_paramstyle = "format"
    now_sql = "NOW()"

    id_column = "BIGSERIAL PRIMARY KEY"
    bool_type = "BOOLEAN"
    false_literal = "FALSE"
    timestamp_type = "TIMESTAMP"

    def create_if_absent(self, insert_sql: str, conflict_columns: Sequence[str]) -> str:
        self._strip_insert(insert_sql)
        columns = ", ".join(conflict_columns)
        return f"{insert_sql.strip()} ON CONFLICT ({columns}) DO NOTHING"

    def insert_returning_id(
        self, conn: Connection, insert_sql: str, params: Sequence[Any]
    ) -> int:
        result = conn.exec_driver_sql(self.bind(insert_sql.strip() + " RETURNING id"), tuple(params))
        return int(result.scalar_one())


class MySQLAdapter(DialectAdapter):
    """MySQL / MariaDB client/server engine."""

    dialect = Dialect.MYSQL
    default_paramstyle = "format"
    now_sql = "NOW()"

    id_column = "BIGINT AUTO_INCREMENT PRIMARY KEY"
    bool_type = "TINYINT(1)"
    false_literal = "0"
    timestamp_type = "DATETIME"
    table_options = " ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"
    inline_indexes = True

    def create_if_absent(self, insert_sql: str, conflict_columns: Sequence[str]) -> str:
        return "INSERT IGNORE INTO " + self._strip_insert(insert_sql)


_ADAPTERS: dict[Dialect, type[DialectAdapter]] = {
    Dialect.SQLITE: SQLiteAdapter,
    Dialect.POSTGRES: PostgresAdapter,
    Dialect.MYSQL: MySQLAdapter,
}


def get_adapter(dialect: Dialect | str, paramstyle: str | None = None) -> DialectAdapter:
    """Build the adapter for a dialect.

    Args:
        dialect: A :class:`Dialect` or a dialect tag such as ``"postgres"``.
        paramstyle: DB-API paramstyle of the driver; the dialect's usual
            driver style when omitted.

    Raises:
        ConfigurationError: If the dialect or paramstyle is not supported.
    """

    if not isinstance(dialect, Dialect):
        dialect = Dialect.parse(dialect)
    return _ADAPTERS[dialect](paramstyle)


def adapter_for_engine(engine: Engine, dialect: Dialect | str | None = None) -> DialectAdapter:
    """Build the adapter matching a SQLAlchemy engine's backend and driver."""

    return get_adapter(dialect or engine.dialect.name, paramstyle=engine.dialect.paramstyle)
