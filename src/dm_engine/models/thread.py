"""Thread, per-participant state and message models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


def other_participant(low: int, high: int, user_id: int) -> int:
    """Return whichever of a thread's two participants is not ``user_id``."""
    return high if user_id == low else low


class Thread(BaseModel):
    """A conversation between exactly two distinct participants."""

    id: int = Field(description="Surrogate thread ID")
    participant_low: int = Field(description="Smaller participant user ID")
    participant_high: int = Field(description="Larger participant user ID")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    last_message_id: int | None = Field(default=None, description="Most recent message ID")
    last_message_at: datetime | None = Field(
        default=None, description="Timestamp of the most recent message"
    )

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.participant_low, self.participant_high)

    def other_participant(self, user_id: int) -> int:
        return other_participant(self.participant_low, self.participant_high, user_id)


class ThreadState(BaseModel):
    """One participant's private view of a shared thread."""

    thread_id: int
    user_id: int
    last_read_message_id: int | None = None
    archived: bool = False
    muted: bool = False
    deleted: bool = False
    folder: str | None = None
    updated_at: datetime | None = None


class Message(BaseModel):
    """An immutable conversation entry."""

    id: int = Field(description="Message ID, increasing within a thread")
    thread_id: int = Field(description="Owning thread ID")
    sender_id: int = Field(description="Sending participant user ID")
    body: str = Field(description="Trimmed message body")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
