"""Thread and per-participant state storage.

Thread creation is idempotent and race-free without application locks: the
thread row is written with a create-if-absent insert keyed by the ordered
participant pair and then read back in the same transaction, so whichever
caller loses the race simply reads the winner's row. Per-participant state
rows are created the same way, keyed by ``(thread_id, user_id)``.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.engine import Connection, Engine, RowMapping

from dm_engine.db.base import SQLRepository, as_bool, as_optional_int, parse_timestamp
from dm_engine.db.dialect import DialectAdapter
from dm_engine.exceptions import ThreadNotFoundError
from dm_engine.inbox import InboxProjector
from dm_engine.models import InboxEntry, Thread, ThreadListFilter, ThreadState
from dm_engine.threads.identity import normalize_pair
from dm_engine.utils import normalize_folder, require_positive_id

logger = structlog.get_logger()


_THREAD_COLUMNS = "id, participant_low, participant_high, created_at, last_message_id, last_message_at"

_STATE_COLUMNS = (
    "thread_id, user_id, last_read_message_id, archived, muted, deleted, folder, updated_at"
)


class ThreadRepository(SQLRepository):
    """Repository for threads and their per-participant state."""

    def __init__(
        self,
        engine: Engine,
        adapter: DialectAdapter,
        projector: InboxProjector | None = None,
    ) -> None:
        super().__init__(engine, adapter)
        self._projector = projector or InboxProjector(engine, adapter)

    def get_or_create(self, user_a: int, user_b: int) -> Thread:
        """Return the thread between two users, creating it on first contact.

        Both participants' state rows are created in the same transaction as
        the thread row. Calling this with the users in either order, any
        number of times and from concurrent processes, yields one thread.

        Raises:
            InvalidArgumentError: If an id is not positive or both are equal.
            StoreError: If the transaction fails; nothing is left behind.
        """

        pair = normalize_pair(user_a, user_b)
        insert_thread = self._adapter.create_if_absent(
            "INSERT INTO threads (participant_low, participant_high, created_at) "
            f"VALUES (?, ?, {self._adapter.now_sql})",
            ("participant_low", "participant_high"),
        )

        with self._transaction("get_or_create_thread") as conn:
            inserted = self._execute(conn, insert_thread, pair).rowcount == 1
            row = (
                self._execute(
                    conn,
                    f"SELECT {_THREAD_COLUMNS} FROM threads "
                    "WHERE participant_low = ? AND participant_high = ?",
                    pair,
                )
                .mappings()
                .one()
            )
            thread = self._row_to_thread(row)
            for user_id in pair:
                self._ensure_state(conn, thread.id, user_id)

        if inserted:
            logger.info(
                "thread_created",
                thread_id=thread.id,
                participant_low=pair.low,
                participant_high=pair.high,
            )
        return thread

    def get_by_users(self, user_a: int, user_b: int) -> Thread | None:
        """Look up the thread between two users without creating it."""

        pair = normalize_pair(user_a, user_b)
        with self._connect("get_thread_by_users") as conn:
            row = (
                self._execute(
                    conn,
                    f"SELECT {_THREAD_COLUMNS} FROM threads "
                    "WHERE participant_low = ? AND participant_high = ?",
                    pair,
                )
                .mappings()
                .first()
            )
        return None if row is None else self._row_to_thread(row)

    def get_by_id(self, thread_id: int) -> Thread:
        """Look up a thread by id.

        Raises:
            ThreadNotFoundError: If no thread has this id.
        """

        thread_id = require_positive_id(thread_id, "thread_id")
        with self._connect("get_thread_by_id") as conn:
            row = (
                self._execute(conn, f"SELECT {_THREAD_COLUMNS} FROM threads WHERE id = ?", (thread_id,))
                .mappings()
                .first()
            )
        if row is None:
            raise ThreadNotFoundError(thread_id)
        return self._row_to_thread(row)

    def get_state(self, thread_id: int, user_id: int) -> ThreadState | None:
        """Return one participant's state row, or None if there is none."""

        thread_id = require_positive_id(thread_id, "thread_id")
        user_id = require_positive_id(user_id, "user_id")
        with self._connect("get_thread_state") as conn:
            row = (
                self._execute(
                    conn,
                    f"SELECT {_STATE_COLUMNS} FROM thread_state WHERE thread_id = ? AND user_id = ?",
                    (thread_id, user_id),
                )
                .mappings()
                .first()
            )
        return None if row is None else self._row_to_state(row)

    def list_for_user(
        self, user_id: int, thread_filter: ThreadListFilter | None = None
    ) -> list[InboxEntry]:
        """List a user's threads as inbox entries (see :class:`InboxProjector`)."""
        return self._projector.list_for_user(user_id, thread_filter)

    def set_folder(self, thread_id: int, user_id: int, folder: str | None) -> bool:
        """File the thread under ``folder`` for one user; blank or ``__inbox__`` clears it."""

        return self._update_state(
            "set_thread_folder", thread_id, user_id, "folder = ?", (normalize_folder(folder),)
        )

    def set_archived(self, thread_id: int, user_id: int, archived: bool) -> bool:
        return self._update_state(
            "set_thread_archived", thread_id, user_id, "archived = ?", (bool(archived),)
        )

    def set_muted(self, thread_id: int, user_id: int, muted: bool) -> bool:
        return self._update_state("set_thread_muted", thread_id, user_id, "muted = ?", (bool(muted),))

    def soft_delete(self, thread_id: int, user_id: int) -> bool:
        """Hide the thread for one user; the other participant is unaffected."""
        return self._update_state("soft_delete_thread", thread_id, user_id, "deleted = ?", (True,))

    def mark_read(self, thread_id: int, user_id: int, message_id: int) -> bool:
        """Advance the user's read cursor to ``message_id``.

        The cursor only moves forward: a call with an id at or below the
        current cursor changes nothing.

        Returns:
            True if the cursor moved.
        """

        thread_id = require_positive_id(thread_id, "thread_id")
        user_id = require_positive_id(user_id, "user_id")
        message_id = require_positive_id(message_id, "message_id")

        stmt = (
            "UPDATE thread_state "
            f"SET last_read_message_id = ?, updated_at = {self._adapter.now_sql} "
            "WHERE thread_id = ? AND user_id = ? "
            "AND (last_read_message_id IS NULL OR last_read_message_id < ?)"
        )
        with self._transaction("mark_thread_read") as conn:
            moved = self._execute(conn, stmt, (message_id, thread_id, user_id, message_id)).rowcount > 0

        if moved:
            logger.debug(
                "thread_marked_read", thread_id=thread_id, user_id=user_id, message_id=message_id
            )
        return moved

    def update_last_message(self, thread_id: int, message_id: int) -> bool:
        """Point the thread at its newest message.

        ``last_message_at`` is copied from the message row. The pointer never
        moves backwards, and a message from another thread is ignored.

        Returns:
            True if the pointer moved.
        """

        thread_id = require_positive_id(thread_id, "thread_id")
        message_id = require_positive_id(message_id, "message_id")

        stmt = """
            UPDATE threads
            SET last_message_id = ?,
                last_message_at = (SELECT m.created_at FROM messages m WHERE m.id = ?)
            WHERE id = ?
              AND (last_message_id IS NULL OR last_message_id < ?)
              AND EXISTS (SELECT 1 FROM messages m WHERE m.id = ? AND m.thread_id = ?)
        """
        params = (message_id, message_id, thread_id, message_id, message_id, thread_id)
        with self._transaction("update_thread_last_message") as conn:
            moved = self._execute(conn, stmt, params).rowcount > 0

        logger.debug(
            "thread_last_message_updated", thread_id=thread_id, message_id=message_id, moved=moved
        )
        return moved

    def _ensure_state(self, conn: Connection, thread_id: int, user_id: int) -> None:
        stmt = self._adapter.create_if_absent(
            "INSERT INTO thread_state (thread_id, user_id, archived, muted, deleted, updated_at) "
            f"VALUES (?, ?, ?, ?, ?, {self._adapter.now_sql})",
            ("thread_id", "user_id"),
        )
        self._execute(conn, stmt, (thread_id, user_id, False, False, False))

    def _update_state(
        self,
        operation: str,
        thread_id: int,
        user_id: int,
        assignment: str,
        params: tuple[Any, ...],
    ) -> bool:
        thread_id = require_positive_id(thread_id, "thread_id")
        user_id = require_positive_id(user_id, "user_id")

        stmt = (
            f"UPDATE thread_state SET {assignment}, updated_at = {self._adapter.now_sql} "
            "WHERE thread_id = ? AND user_id = ?"
        )
        with self._transaction(operation) as conn:
            updated = self._execute(conn, stmt, (*params, thread_id, user_id)).rowcount > 0

        logger.debug(operation, thread_id=thread_id, user_id=user_id, updated=updated)
        return updated

    @staticmethod
    def _row_to_thread(row: RowMapping) -> Thread:
        return Thread(
            id=int(row["id"]),
            participant_low=int(row["participant_low"]),
            participant_high=int(row["participant_high"]),
            created_at=parse_timestamp(row["created_at"]),
            last_message_id=as_optional_int(row["last_message_id"]),
            last_message_at=parse_timestamp(row["last_message_at"]),
        )

    @staticmethod
    def _row_to_state(row: RowMapping) -> ThreadState:
        return ThreadState(
            thread_id=int(row["thread_id"]),
            user_id=int(row["user_id"]),
            last_read_message_id=as_optional_int(row["last_read_message_id"]),
            archived=as_bool(row["archived"]),
            muted=as_bool(row["muted"]),
            deleted=as_bool(row["deleted"]),
            folder=row["folder"],
            updated_at=parse_timestamp(row["updated_at"]),
        )
