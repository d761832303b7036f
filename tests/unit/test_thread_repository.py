"""Unit tests for the thread store."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy.exc import OperationalError

from dm_engine.exceptions import InvalidArgumentError, StoreError, ThreadNotFoundError
from dm_engine.threads import ThreadRepository


class TestGetOrCreate:
    """Thread identity resolution."""

    def test_creates_thread_with_ordered_participants(self, threads) -> None:
        thread = threads.get_or_create(9, 3)

        assert thread.id > 0
        assert thread.participant_low == 3
        assert thread.participant_high == 9
        assert thread.created_at is not None
        assert thread.last_message_id is None

    def test_idempotent_in_either_order(self, threads, count_rows) -> None:
        first = threads.get_or_create(1, 2)
        second = threads.get_or_create(2, 1)
        third = threads.get_or_create(1, 2)

        assert first.id == second.id == third.id
        assert count_rows("threads") == 1
        assert count_rows("thread_state") == 2

    def test_creates_state_for_both_participants(self, threads) -> None:
        thread = threads.get_or_create(4, 7)

        for user_id in (4, 7):
            state = threads.get_state(thread.id, user_id)
            assert state is not None
            assert state.last_read_message_id is None
            assert state.archived is False
            assert state.muted is False
            assert state.deleted is False
            assert state.folder is None

    def test_distinct_pairs_get_distinct_threads(self, threads) -> None:
        assert threads.get_or_create(1, 2).id != threads.get_or_create(1, 3).id

    @pytest.mark.parametrize("pair", [(5, 5), (0, 2), (2, -1)])
    def test_invalid_pairs_rejected(self, threads, count_rows, pair) -> None:
        with pytest.raises(InvalidArgumentError):
            threads.get_or_create(*pair)

        assert count_rows("threads") == 0

    def test_concurrent_first_contact_yields_one_thread(self, threads, count_rows) -> None:
        pairs = [(10, 20) if i % 2 else (20, 10) for i in range(16)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            ids = list(pool.map(lambda pair: threads.get_or_create(*pair).id, pairs))

        assert len(set(ids)) == 1
        assert count_rows("threads") == 1
        assert count_rows("thread_state") == 2

    def test_failure_leaves_nothing_behind(self, threads, count_rows, monkeypatch) -> None:
        def failing_state(self, conn, thread_id, user_id):
            raise OperationalError("INSERT INTO thread_state", (), Exception("disk I/O error"))

        monkeypatch.setattr(ThreadRepository, "_ensure_state", failing_state)

        with pytest.raises(StoreError, match="get_or_create_thread"):
            threads.get_or_create(1, 2)

        assert count_rows("threads") == 0
        assert count_rows("thread_state") == 0


class TestLookups:
    def test_get_by_users_without_creating(self, threads, count_rows) -> None:
        assert threads.get_by_users(1, 2) is None
        assert count_rows("threads") == 0

        created = threads.get_or_create(1, 2)

        assert threads.get_by_users(2, 1) == created

    def test_get_by_id(self, threads) -> None:
        created = threads.get_or_create(1, 2)

        assert threads.get_by_id(created.id) == created

    def test_get_by_id_missing(self, threads) -> None:
        with pytest.raises(ThreadNotFoundError) as exc_info:
            threads.get_by_id(404)

        assert exc_info.value.thread_id == 404

    def test_get_state_for_non_participant(self, threads) -> None:
        thread = threads.get_or_create(1, 2)

        assert threads.get_state(thread.id, 3) is None


class TestMarkRead:
    """Read cursor behaviour."""

    def test_cursor_only_moves_forward(self, threads, messages) -> None:
        thread = threads.get_or_create(1, 2)
        ids = [messages.append(thread.id, 2, f"message {i}") for i in range(3)]

        assert threads.mark_read(thread.id, 1, ids[1]) is True
        assert threads.mark_read(thread.id, 1, ids[0]) is False
        assert threads.mark_read(thread.id, 1, ids[1]) is False
        assert threads.get_state(thread.id, 1).last_read_message_id == ids[1]

        assert threads.mark_read(thread.id, 1, ids[2]) is True
        assert threads.get_state(thread.id, 1).last_read_message_id == ids[2]

    def test_cursor_is_per_user(self, threads, messages) -> None:
        thread = threads.get_or_create(1, 2)
        message_id = messages.append(thread.id, 2, "hi")

        threads.mark_read(thread.id, 1, message_id)

        assert threads.get_state(thread.id, 2).last_read_message_id is None

    def test_non_participant_changes_nothing(self, threads, count_rows) -> None:
        thread = threads.get_or_create(1, 2)

        assert threads.mark_read(thread.id, 3, 1) is False
        assert count_rows("thread_state") == 2

    def test_invalid_message_id(self, threads) -> None:
        thread = threads.get_or_create(1, 2)

        with pytest.raises(InvalidArgumentError):
            threads.mark_read(thread.id, 1, 0)


class TestStateUpdates:
    """Folder, archive, mute and delete flags are private to one participant."""

    def test_set_folder_and_clear(self, threads) -> None:
        thread = threads.get_or_create(1, 2)

        assert threads.set_folder(thread.id, 1, "  Work ") is True
        assert threads.get_state(thread.id, 1).folder == "Work"
        assert threads.get_state(thread.id, 2).folder is None

        threads.set_folder(thread.id, 1, "   ")
        assert threads.get_state(thread.id, 1).folder is None

    def test_set_archived(self, threads) -> None:
        thread = threads.get_or_create(1, 2)

        threads.set_archived(thread.id, 2, True)
        assert threads.get_state(thread.id, 2).archived is True
        assert threads.get_state(thread.id, 1).archived is False

        threads.set_archived(thread.id, 2, False)
        assert threads.get_state(thread.id, 2).archived is False

    def test_set_muted(self, threads) -> None:
        thread = threads.get_or_create(1, 2)

        threads.set_muted(thread.id, 1, True)

        assert threads.get_state(thread.id, 1).muted is True

    def test_soft_delete_only_hides_for_one_user(self, threads) -> None:
        thread = threads.get_or_create(1, 2)

        assert threads.soft_delete(thread.id, 1) is True
        assert threads.get_state(thread.id, 1).deleted is True
        assert threads.get_state(thread.id, 2).deleted is False
        assert threads.get_by_id(thread.id) == thread

    def test_update_for_missing_state_returns_false(self, threads) -> None:
        assert threads.set_archived(999, 1, True) is False


class TestUpdateLastMessage:
    def test_pointer_copies_message_timestamp(self, threads, messages) -> None:
        thread = threads.get_or_create(1, 2)
        message_id = messages.append(thread.id, 1, "hello")

        assert threads.update_last_message(thread.id, message_id) is True

        updated = threads.get_by_id(thread.id)
        assert updated.last_message_id == message_id
        assert updated.last_message_at == messages.get(message_id).created_at

    def test_pointer_never_moves_backwards(self, threads, messages) -> None:
        thread = threads.get_or_create(1, 2)
        older = messages.append(thread.id, 1, "first")
        newer = messages.append(thread.id, 2, "second")

        threads.update_last_message(thread.id, newer)

        assert threads.update_last_message(thread.id, older) is False
        assert threads.get_by_id(thread.id).last_message_id == newer

    def test_message_from_other_thread_ignored(self, threads, messages) -> None:
        thread = threads.get_or_create(1, 2)
        other = threads.get_or_create(1, 3)
        foreign = messages.append(other.id, 3, "elsewhere")

        assert threads.update_last_message(thread.id, foreign) is False
        assert threads.get_by_id(thread.id).last_message_id is None
