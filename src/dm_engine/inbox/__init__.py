"""Inbox read views.

Listings, unread counts and folder lists for one user, derived from thread,
thread state and last-message rows. Nothing here is persisted: unread status
is recomputed from the read cursor on every query.
"""

from .projector import UNREAD_PREDICATE, InboxProjector

__all__ = ["InboxProjector", "UNREAD_PREDICATE"]
