"""Data models for DM Engine.

This module contains Pydantic models for threads, per-participant state and
messages, plus the inbox projection built from them.
"""

from dm_engine.models.inbox import InboxEntry, ThreadListFilter
from dm_engine.models.thread import Message, Thread, ThreadState, other_participant

__all__ = [
    "InboxEntry",
    "Message",
    "Thread",
    "ThreadListFilter",
    "ThreadState",
    "other_participant",
]
