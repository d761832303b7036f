"""Directional user blocks consulted before messages are sent."""

from .repository import BlockRepository

__all__ = ["BlockRepository"]
