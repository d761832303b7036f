"""Two-party threads.

This package normalizes participant pairs into thread identity and stores
threads together with each participant's private state.
"""

from .identity import ParticipantPair, normalize_pair
from .repository import ThreadRepository

__all__ = ["ParticipantPair", "ThreadRepository", "normalize_pair"]
