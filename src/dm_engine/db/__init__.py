"""Database access layer.

Engine construction, dialect adapters and schema bootstrap shared by the
thread, message, inbox and block repositories.
"""

from .dialect import Dialect, DialectAdapter, adapter_for_engine, get_adapter
from .engine import create_db_engine
from .schema import SCHEMA_VERSION, ensure_schema

__all__ = [
    "Dialect",
    "DialectAdapter",
    "SCHEMA_VERSION",
    "adapter_for_engine",
    "create_db_engine",
    "ensure_schema",
    "get_adapter",
]
