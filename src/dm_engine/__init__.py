"""DM Engine - two-party direct-messaging threads over a relational store.

This package manages conversation threads between pairs of users, keeps
per-participant state (archive, mute, soft-delete, folder, read cursor) and
derives inbox views and unread counts. It runs unmodified against SQLite,
PostgreSQL and MySQL.
"""

__version__ = "0.1.0"
__author__ = "Trickl"

from dm_engine.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__", "__author__"]
