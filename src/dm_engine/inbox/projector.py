"""Per-user read views over threads, thread state and last messages."""

from __future__ import annotations

from typing import Any

from sqlalchemy.engine import RowMapping

from dm_engine.db.base import SQLRepository, as_bool, as_optional_int, parse_timestamp
from dm_engine.models import InboxEntry, ThreadListFilter, other_participant
from dm_engine.utils import require_positive_id


# A thread is unread for the state's owner when it has a last message the
# owner's read cursor has not reached. Used by both listing and counting.
UNREAD_PREDICATE = (
    "t.last_message_id IS NOT NULL"
    " AND (s.last_read_message_id IS NULL OR s.last_read_message_id < t.last_message_id)"
)

_LIST_SQL = f"""
    SELECT
        t.id AS thread_id,
        t.participant_low,
        t.participant_high,
        t.created_at AS thread_created_at,
        t.last_message_at,
        t.last_message_id,
        s.last_read_message_id,
        s.archived,
        s.muted,
        s.deleted,
        s.updated_at AS state_updated_at,
        s.folder,
        m.sender_id AS last_message_sender_id,
        m.body AS last_message_body,
        m.created_at AS last_message_created_at,
        CASE WHEN {UNREAD_PREDICATE} THEN 1 ELSE 0 END AS unread
    FROM threads t
    JOIN thread_state s ON s.thread_id = t.id AND s.user_id = ?
    LEFT JOIN messages m ON m.id = t.last_message_id
"""

_ORDER_SQL = (
    " ORDER BY COALESCE(t.last_message_at, t.created_at) DESC,"
    " COALESCE(t.last_message_id, 0) DESC,"
    " t.id DESC"
)


class InboxProjector(SQLRepository):
    """Builds inbox listings, unread counts and folder lists for one user."""

    def list_for_user(
        self, user_id: int, thread_filter: ThreadListFilter | None = None
    ) -> list[InboxEntry]:
        """List a user's threads, most recent activity first.

        Soft-deleted threads are excluded unless ``thread_filter.deleted`` is
        set. Ties on activity time are broken by last message id, then thread
        id, so offset pagination is stable.
        """

        user_id = require_positive_id(user_id, "user_id")
        f = thread_filter or ThreadListFilter()

        clauses: list[str] = []
        params: list[Any] = [user_id]

        if f.thread_id:
            clauses.append("t.id = ?")
            params.append(f.thread_id)
        if f.archived is not None:
            clauses.append("s.archived = ?")
            params.append(f.archived)
        if f.muted is not None:
            clauses.append("s.muted = ?")
            params.append(f.muted)
        clauses.append("s.deleted = ?")
        params.append(bool(f.deleted))
        if f.folder is not None:
            label = f.folder.strip()
            if label:
                clauses.append("s.folder = ?")
                params.append(label)
            else:
                clauses.append("(s.folder IS NULL OR s.folder = '')")

        query = _LIST_SQL + " WHERE " + " AND ".join(clauses) + _ORDER_SQL
        if f.limit > 0:
            query += " LIMIT ?"
            params.append(f.limit)
            if f.offset > 0:
                query += " OFFSET ?"
                params.append(f.offset)

        with self._connect("list_threads_for_user") as conn:
            rows = self._execute(conn, query, params).mappings().all()

        return [self._row_to_entry(user_id, row) for row in rows]

    def count_unread(self, user_id: int) -> int:
        """Count threads with unread messages for ``user_id``.

        Archived and soft-deleted threads are not counted, nor threads whose
        last message was sent by ``user_id``.
        """

        user_id = require_positive_id(user_id, "user_id")
        query = f"""
            SELECT COUNT(1)
            FROM threads t
            JOIN thread_state s ON s.thread_id = t.id AND s.user_id = ?
            LEFT JOIN messages m ON m.id = t.last_message_id
            WHERE s.deleted = ?
              AND s.archived = ?
              AND {UNREAD_PREDICATE}
              AND (m.sender_id IS NULL OR m.sender_id <> ?)
        """
        with self._connect("count_unread") as conn:
            count = self._execute(conn, query, (user_id, False, False, user_id)).scalar()
        return int(count or 0)

    def list_folders(self, user_id: int) -> list[str]:
        """Distinct non-empty folder labels on the user's non-deleted threads."""

        user_id = require_positive_id(user_id, "user_id")
        query = """
            SELECT DISTINCT folder
            FROM thread_state
            WHERE user_id = ?
              AND deleted = ?
              AND folder IS NOT NULL
              AND folder <> ''
            ORDER BY folder ASC
        """
        with self._connect("list_folders") as conn:
            rows = self._execute(conn, query, (user_id, False)).fetchall()

        folders: list[str] = []
        for (folder,) in rows:
            name = (folder or "").strip()
            if name:
                folders.append(name)
        return folders

    @staticmethod
    def _row_to_entry(user_id: int, row: RowMapping) -> InboxEntry:
        low = int(row["participant_low"])
        high = int(row["participant_high"])
        return InboxEntry(
            thread_id=int(row["thread_id"]),
            other_user_id=other_participant(low, high, user_id),
            thread_created_at=parse_timestamp(row["thread_created_at"]),
            last_message_id=as_optional_int(row["last_message_id"]),
            last_message_at=parse_timestamp(row["last_message_at"]),
            last_message_sender_id=as_optional_int(row["last_message_sender_id"]),
            last_message_body=row["last_message_body"] or "",
            last_message_created_at=parse_timestamp(row["last_message_created_at"]),
            last_read_message_id=as_optional_int(row["last_read_message_id"]),
            archived=as_bool(row["archived"]),
            muted=as_bool(row["muted"]),
            deleted=as_bool(row["deleted"]),
            folder=(row["folder"] or "").strip(),
            state_updated_at=parse_timestamp(row["state_updated_at"]),
            unread=as_bool(row["unread"]),
        )
