"""Thread messages."""

from .repository import MessageRepository

__all__ = ["MessageRepository"]
