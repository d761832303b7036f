"""Append-only message storage with backward cursor pagination."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.engine import RowMapping

from dm_engine.db.base import SQLRepository, parse_timestamp
from dm_engine.exceptions import InvalidArgumentError, NotParticipantError, ThreadNotFoundError
from dm_engine.models import Message
from dm_engine.utils import require_positive_id

logger = structlog.get_logger()


_MESSAGE_COLUMNS = "id, thread_id, sender_id, body, created_at"


class MessageRepository(SQLRepository):
    """Repository for thread messages."""

    def append(self, thread_id: int, sender_id: int, body: str) -> int:
        """Append a message to a thread and return its id.

        The thread's last-message pointer is not touched here; callers advance
        it with ``ThreadRepository.update_last_message`` once this returns,
        so the pointer never references a message that is not stored yet.
        Appends are not idempotent and must not be retried blindly.

        Raises:
            InvalidArgumentError: If an id is not positive or the body is blank.
            ThreadNotFoundError: If the thread does not exist.
            NotParticipantError: If the sender is not one of the participants.
        """

        thread_id = require_positive_id(thread_id, "thread_id")
        sender_id = require_positive_id(sender_id, "sender_id")
        body = (body or "").strip()
        if not body:
            raise InvalidArgumentError("Message body is empty")

        with self._transaction("append_message") as conn:
            participants = self._execute(
                conn,
                "SELECT participant_low, participant_high FROM threads WHERE id = ?",
                (thread_id,),
            ).first()
            if participants is None:
                raise ThreadNotFoundError(thread_id)
            if sender_id not in (int(participants[0]), int(participants[1])):
                raise NotParticipantError(thread_id, sender_id)

            message_id = self._adapter.insert_returning_id(
                conn,
                "INSERT INTO messages (thread_id, sender_id, body, created_at) "
                f"VALUES (?, ?, ?, {self._adapter.now_sql})",
                (thread_id, sender_id, body),
            )

        logger.info(
            "message_appended",
            thread_id=thread_id,
            sender_id=sender_id,
            message_id=message_id,
            body_length=len(body),
        )
        return message_id

    def get(self, message_id: int) -> Message | None:
        message_id = require_positive_id(message_id, "message_id")
        with self._connect("get_message") as conn:
            row = (
                self._execute(conn, f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ?", (message_id,))
                .mappings()
                .first()
            )
        return None if row is None else self._row_to_message(row)

    def list(self, thread_id: int, limit: int = 0, before_message_id: int = 0) -> list[Message]:
        """List a thread's messages, newest first.

        Args:
            thread_id: Thread to read.
            limit: Maximum number of messages; 0 for no limit.
            before_message_id: When positive, only messages with a smaller id
                are returned. Pass the oldest id of the previous page to walk
                backwards; pages stay stable while new messages arrive.
        """

        thread_id = require_positive_id(thread_id, "thread_id")
        query = f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE thread_id = ?"
        params: list[Any] = [thread_id]
        if before_message_id and before_message_id > 0:
            query += " AND id < ?"
            params.append(before_message_id)
        query += " ORDER BY id DESC"
        if limit and limit > 0:
            query += " LIMIT ?"
            params.append(limit)

        with self._connect("list_messages") as conn:
            rows = self._execute(conn, query, params).mappings().all()
        return [self._row_to_message(row) for row in rows]

    @staticmethod
    def _row_to_message(row: RowMapping) -> Message:
        return Message(
            id=int(row["id"]),
            thread_id=int(row["thread_id"]),
            sender_id=int(row["sender_id"]),
            body=row["body"],
            created_at=parse_timestamp(row["created_at"]),
        )
