"""Inbox projection model and listing filter."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class ThreadListFilter:
    """Filter for listing a user's threads.

    ``None`` means "do not filter on this field", except for ``deleted``:
    soft-deleted threads are hidden unless ``deleted=True`` is requested.
    ``folder=""`` selects threads without a folder.
    """

    thread_id: int | None = None
    archived: bool | None = None
    muted: bool | None = None
    deleted: bool | None = None
    folder: str | None = None
    limit: int = 0
    offset: int = 0


class InboxEntry(BaseModel):
    """A thread as seen by one of its participants."""

    thread_id: int
    other_user_id: int
    thread_created_at: datetime | None = None

    last_message_id: int | None = None
    last_message_at: datetime | None = None
    last_message_sender_id: int | None = None
    last_message_body: str = ""
    last_message_created_at: datetime | None = None

    last_read_message_id: int | None = None
    archived: bool = False
    muted: bool = False
    deleted: bool = False
    folder: str = Field(default="", description="Folder label, empty when unfiled")
    state_updated_at: datetime | None = None

    unread: bool = False

    @property
    def activity_at(self) -> datetime | None:
        """Timestamp of the latest activity (last message, else creation)."""
        return self.last_message_at or self.thread_created_at
