"""Unit tests for user blocks."""

import pytest

from dm_engine.exceptions import InvalidArgumentError


def test_block_is_directional(blocks) -> None:
    blocks.add(1, 2)

    assert blocks.is_blocked(1, 2) is True
    assert blocks.is_blocked(2, 1) is False


def test_add_is_idempotent(blocks, count_rows) -> None:
    blocks.add(1, 2)
    blocks.add(1, 2)

    assert count_rows("user_blocks") == 1


def test_remove(blocks) -> None:
    blocks.add(1, 2)
    blocks.remove(1, 2)
    blocks.remove(1, 2)

    assert blocks.is_blocked(1, 2) is False


def test_blocked_by(blocks) -> None:
    blocks.add(1, 2)
    blocks.add(1, 3)
    blocks.add(4, 1)

    assert blocks.blocked_by(1) == {2, 3}
    assert blocks.blocked_by(2) == set()


@pytest.mark.parametrize("pair", [(1, 1), (0, 2), (2, -5)])
def test_invalid_pairs(blocks, pair) -> None:
    with pytest.raises(InvalidArgumentError):
        blocks.add(*pair)
