"""Canonical identity of a two-party thread.

A thread is keyed by its participants in ascending order. Every lookup and
creation goes through :func:`normalize_pair`; building the key any other way
would let ``(A, B)`` and ``(B, A)`` become two threads.
"""

from __future__ import annotations

from typing import NamedTuple

from dm_engine.exceptions import InvalidArgumentError
from dm_engine.utils import require_positive_id


class ParticipantPair(NamedTuple):
    """Participants of a thread, smaller id first."""

    low: int
    high: int


def normalize_pair(user_a: int, user_b: int) -> ParticipantPair:
    """Order an unordered pair of user ids.

    Raises:
        InvalidArgumentError: If either id is not positive, or both are equal.
    """

    user_a = require_positive_id(user_a, "user_a")
    user_b = require_positive_id(user_b, "user_b")
    if user_a == user_b:
        raise InvalidArgumentError("A thread needs two distinct participants")
    if user_a < user_b:
        return ParticipantPair(user_a, user_b)
    return ParticipantPair(user_b, user_a)
