"""Utility functions for DM Engine."""

from __future__ import annotations

from typing import Any

from dm_engine.exceptions import InvalidArgumentError

ELLIPSIS = "…"

# Folder name meaning "not filed in any folder".
INBOX_FOLDER_TOKEN = "__inbox__"


def require_positive_id(value: Any, name: str) -> int:
    """Validate a surrogate identifier.

    Args:
        value: Candidate identifier.
        name: Argument name used in the error message.

    Returns:
        The identifier as an ``int``.

    Raises:
        InvalidArgumentError: If the value is not a positive integer.
    """

    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidArgumentError(f"{name} must be positive, got {value}")
    return value


def sanitize_body(body: str | None, max_length: int) -> str:
    """Trim a message body and enforce the length limit.

    Raises:
        InvalidArgumentError: If the body is empty or longer than ``max_length``.
    """

    trimmed = (body or "").strip()
    if not trimmed:
        raise InvalidArgumentError("Message body is empty")
    if len(trimmed) > max_length:
        raise InvalidArgumentError(
            f"Message body is {len(trimmed)} characters; the limit is {max_length}"
        )
    return trimmed


def normalize_folder(folder: str | None, max_length: int | None = None) -> str | None:
    """Clean up a folder label.

    Whitespace runs (including newlines) collapse to one space. An empty
    label or :data:`INBOX_FOLDER_TOKEN` means "no folder" and yields None.

    Raises:
        InvalidArgumentError: If the label is longer than ``max_length``.
    """

    label = " ".join((folder or "").split())
    if not label or label == INBOX_FOLDER_TOKEN:
        return None
    if max_length is not None and len(label) > max_length:
        raise InvalidArgumentError(
            f"Folder label is {len(label)} characters; the limit is {max_length}"
        )
    return label


def truncate(text: str, max_length: int) -> str:
    """Cut ``text`` to ``max_length`` characters."""
    if max_length <= 0:
        return ""
    return text[:max_length]


def build_preview(body: str | None, max_length: int) -> str:
    """Single-line preview of a message body for inbox listings.

    Whitespace runs (including newlines) collapse to one space; text longer
    than ``max_length`` is truncated and suffixed with an ellipsis.
    """

    collapsed = " ".join((body or "").split())
    if len(collapsed) <= max_length:
        return collapsed
    return truncate(collapsed, max_length) + ELLIPSIS
