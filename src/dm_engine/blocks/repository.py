"""User-to-user blocks.

A block is directional: ``add(blocker, blocked)`` only records that
``blocker`` refuses contact from ``blocked``.
"""

from __future__ import annotations

import structlog

from dm_engine.db.base import SQLRepository
from dm_engine.exceptions import InvalidArgumentError
from dm_engine.utils import require_positive_id

logger = structlog.get_logger()


def _validate_pair(blocker_id: int, blocked_id: int) -> tuple[int, int]:
    blocker_id = require_positive_id(blocker_id, "blocker_id")
    blocked_id = require_positive_id(blocked_id, "blocked_id")
    if blocker_id == blocked_id:
        raise InvalidArgumentError("A user cannot block themselves")
    return blocker_id, blocked_id


class BlockRepository(SQLRepository):
    """Repository for user blocks."""

    def add(self, blocker_id: int, blocked_id: int) -> None:
        """Record a block; adding an existing block is a no-op."""

        pair = _validate_pair(blocker_id, blocked_id)
        stmt = self._adapter.create_if_absent(
            "INSERT INTO user_blocks (blocker_id, blocked_id, created_at) "
            f"VALUES (?, ?, {self._adapter.now_sql})",
            ("blocker_id", "blocked_id"),
        )
        with self._transaction("add_user_block") as conn:
            created = self._execute(conn, stmt, pair).rowcount == 1
        if created:
            logger.info("user_blocked", blocker_id=pair[0], blocked_id=pair[1])

    def remove(self, blocker_id: int, blocked_id: int) -> None:
        """Lift a block; removing a missing block is a no-op."""

        pair = _validate_pair(blocker_id, blocked_id)
        with self._transaction("remove_user_block") as conn:
            removed = self._execute(
                conn,
                "DELETE FROM user_blocks WHERE blocker_id = ? AND blocked_id = ?",
                pair,
            ).rowcount
        if removed:
            logger.info("user_unblocked", blocker_id=pair[0], blocked_id=pair[1])

    def is_blocked(self, blocker_id: int, blocked_id: int) -> bool:
        pair = _validate_pair(blocker_id, blocked_id)
        with self._connect("is_user_blocked") as conn:
            row = self._execute(
                conn,
                "SELECT 1 FROM user_blocks WHERE blocker_id = ? AND blocked_id = ?",
                pair,
            ).first()
        return row is not None

    def blocked_by(self, blocker_id: int) -> set[int]:
        """All users ``blocker_id`` has blocked."""

        blocker_id = require_positive_id(blocker_id, "blocker_id")
        with self._connect("list_user_blocks") as conn:
            rows = self._execute(
                conn, "SELECT blocked_id FROM user_blocks WHERE blocker_id = ?", (blocker_id,)
            ).fetchall()
        return {int(row[0]) for row in rows}
