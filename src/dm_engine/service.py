"""Messaging service.

Single entry point used by request handlers and the CLI. It wires the
repositories to one engine and dialect adapter and adds the rules that sit
above storage: who may message whom, body and folder limits, and the
append -> advance pointer -> mark sender read sequence of a send.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog
from sqlalchemy.engine import Engine

from dm_engine.blocks import BlockRepository
from dm_engine.config import Settings, get_settings
from dm_engine.db import DialectAdapter, adapter_for_engine, create_db_engine, ensure_schema
from dm_engine.exceptions import (
    DMEngineError,
    MessagingBlockedError,
    NotParticipantError,
    ThreadNotFoundError,
)
from dm_engine.inbox import InboxProjector
from dm_engine.messages import MessageRepository
from dm_engine.models import InboxEntry, Message, Thread, ThreadListFilter
from dm_engine.threads import ThreadRepository
from dm_engine.utils import (
    INBOX_FOLDER_TOKEN,
    build_preview,
    normalize_folder,
    require_positive_id,
    sanitize_body,
)

logger = structlog.get_logger()


REASON_SELF = "self"
REASON_BLOCKED_BY_SENDER = "blocked_by_sender"
REASON_BLOCKED_BY_RECIPIENT = "blocked_by_recipient"


@dataclass(frozen=True)
class ThreadView:
    """A thread opened by one participant: its inbox entry and a page of messages."""

    thread: Thread
    entry: InboxEntry
    messages: list[Message] = field(default_factory=list)


def parse_folder_filter(raw: str | None) -> str | None:
    """Translate a user-facing folder filter into a :class:`ThreadListFilter` value.

    Blank means "any folder"; :data:`INBOX_FOLDER_TOKEN` means "no folder".
    """

    label = " ".join((raw or "").split())
    if not label:
        return None
    if label == INBOX_FOLDER_TOKEN:
        return ""
    return label


class MessagingService:
    """Direct-messaging operations over one store."""

    def __init__(
        self,
        engine: Engine,
        adapter: DialectAdapter | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            engine: SQLAlchemy engine bound to the store.
            adapter: Dialect adapter. Derived from the engine (or
                ``settings.dialect``) if None.
            settings: Application settings. If None, uses default settings.
        """

        self.settings = settings or get_settings()
        self.engine = engine
        self.adapter = adapter or adapter_for_engine(engine, self.settings.dialect)

        self.inbox_projector = InboxProjector(engine, self.adapter)
        self.threads = ThreadRepository(engine, self.adapter, projector=self.inbox_projector)
        self.messages = MessageRepository(engine, self.adapter)
        self.blocks = BlockRepository(engine, self.adapter)

        logger.debug(
            "messaging_service_initialized",
            dialect=self.adapter.dialect.value,
            paramstyle=self.adapter.paramstyle,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, database_url: str | None = None
    ) -> MessagingService:
        """Build a service with its own engine from configuration."""
        settings = settings or get_settings()
        engine = create_db_engine(settings, database_url)
        try:
            return cls(engine, settings=settings)
        except DMEngineError:
            engine.dispose()
            raise

    def initialize(self) -> None:
        """Create or verify the schema."""
        ensure_schema(self.engine, self.adapter)

    def close(self) -> None:
        self.engine.dispose()

    # Threads

    def get_or_create_thread(self, user_a: int, user_b: int) -> Thread:
        return self.threads.get_or_create(user_a, user_b)

    def get_thread(self, user_a: int, user_b: int) -> Thread | None:
        return self.threads.get_by_users(user_a, user_b)

    def get_thread_by_id(self, thread_id: int) -> Thread:
        return self.threads.get_by_id(thread_id)

    def list_threads_for_user(
        self, user_id: int, thread_filter: ThreadListFilter | None = None
    ) -> list[InboxEntry]:
        return self.inbox_projector.list_for_user(user_id, thread_filter)

    def count_unread(self, user_id: int) -> int:
        return self.inbox_projector.count_unread(user_id)

    def list_folders(self, user_id: int) -> list[str]:
        return self.inbox_projector.list_folders(user_id)

    def set_folder(self, thread_id: int, user_id: int, folder: str | None) -> bool:
        label = normalize_folder(folder, self.settings.folder_max_length)
        return self.threads.set_folder(thread_id, user_id, label)

    def set_archived(self, thread_id: int, user_id: int, archived: bool = True) -> bool:
        return self.threads.set_archived(thread_id, user_id, archived)

    def set_muted(self, thread_id: int, user_id: int, muted: bool = True) -> bool:
        return self.threads.set_muted(thread_id, user_id, muted)

    def soft_delete(self, thread_id: int, user_id: int) -> bool:
        return self.threads.soft_delete(thread_id, user_id)

    def mark_read(self, thread_id: int, user_id: int, message_id: int) -> bool:
        return self.threads.mark_read(thread_id, user_id, message_id)

    # Messages

    def append_message(self, thread_id: int, sender_id: int, body: str) -> int:
        """Store a message and advance the thread's last-message pointer."""

        body = sanitize_body(body, self.settings.message_max_length)
        message_id = self.messages.append(thread_id, sender_id, body)
        self.threads.update_last_message(thread_id, message_id)
        return message_id

    def list_messages(
        self, thread_id: int, limit: int | None = None, before_id: int = 0
    ) -> list[Message]:
        if limit is None:
            limit = self.settings.message_page_size
        return self.messages.list(thread_id, limit=limit, before_message_id=before_id)

    # Conversation flows

    def can_send(self, sender_id: int, recipient_id: int) -> tuple[bool, str | None]:
        """Check whether ``sender_id`` may message ``recipient_id``.

        Returns:
            ``(True, None)`` or ``(False, reason)``.
        """

        sender_id = require_positive_id(sender_id, "sender_id")
        recipient_id = require_positive_id(recipient_id, "recipient_id")
        if sender_id == recipient_id:
            return False, REASON_SELF
        if self.blocks.is_blocked(sender_id, recipient_id):
            return False, REASON_BLOCKED_BY_SENDER
        if self.blocks.is_blocked(recipient_id, sender_id):
            return False, REASON_BLOCKED_BY_RECIPIENT
        return True, None

    def send_message(self, sender_id: int, recipient_id: int, body: str) -> tuple[Thread, int]:
        """Start or continue the conversation with ``recipient_id``.

        Raises:
            MessagingBlockedError: If either user blocked the other.
            InvalidArgumentError: If the body is blank or too long.
        """

        self._require_can_send(sender_id, recipient_id)
        body = sanitize_body(body, self.settings.message_max_length)

        thread = self.threads.get_or_create(sender_id, recipient_id)
        message_id = self._deliver(thread.id, sender_id, body)
        return thread, message_id

    def reply(self, thread_id: int, sender_id: int, body: str) -> int:
        """Send a message on an existing thread.

        Raises:
            ThreadNotFoundError: If the thread does not exist.
            NotParticipantError: If the sender is not in the thread.
            MessagingBlockedError: If either user blocked the other.
        """

        thread = self.threads.get_by_id(thread_id)
        if not thread.has_participant(sender_id):
            raise NotParticipantError(thread.id, sender_id)
        self._require_can_send(sender_id, thread.other_participant(sender_id))
        body = sanitize_body(body, self.settings.message_max_length)
        return self._deliver(thread.id, sender_id, body)

    def open_thread(self, thread_id: int, user_id: int, limit: int | None = None) -> ThreadView:
        """Load a thread for one of its participants and mark it read.

        Raises:
            ThreadNotFoundError: If the thread does not exist or the user
                deleted it.
            NotParticipantError: If the user is not in the thread.
        """

        user_id = require_positive_id(user_id, "user_id")
        thread = self.threads.get_by_id(thread_id)
        if not thread.has_participant(user_id):
            raise NotParticipantError(thread.id, user_id)

        entries = self.inbox_projector.list_for_user(
            user_id, ThreadListFilter(thread_id=thread.id, deleted=False, limit=1)
        )
        if not entries:
            raise ThreadNotFoundError(thread.id)

        messages = self.list_messages(thread.id, limit=limit)
        entry = entries[0]
        if messages and self.threads.mark_read(thread.id, user_id, messages[0].id):
            entry = entry.model_copy(
                update={"last_read_message_id": messages[0].id, "unread": False}
            )
        return ThreadView(thread=thread, entry=entry, messages=messages)

    def inbox(
        self,
        user_id: int,
        folder: str | None = None,
        archived: bool | None = False,
        deleted: bool | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[InboxEntry]:
        """Inbox listing as shown to the user.

        Threads with users the caller has blocked are hidden, except already
        archived ones when the archived view is requested.
        """

        thread_filter = ThreadListFilter(
            archived=archived,
            deleted=deleted,
            folder=parse_folder_filter(folder),
            limit=self.settings.thread_list_limit if limit is None else limit,
            offset=offset,
        )
        entries = self.inbox_projector.list_for_user(user_id, thread_filter)
        blocked = self.blocks.blocked_by(user_id)
        return [
            entry
            for entry in entries
            if entry.other_user_id not in blocked or (archived and entry.archived)
        ]

    def preview(self, entry: InboxEntry) -> str:
        """Single-line preview of an entry's last message."""
        return build_preview(entry.last_message_body, self.settings.preview_length)

    def set_blocked(self, user_id: int, other_id: int, blocked: bool = True) -> None:
        """Block or unblock another user.

        Blocking also archives the user's thread with them, if there is one.
        """

        if blocked:
            self.blocks.add(user_id, other_id)
            thread = self.threads.get_by_users(user_id, other_id)
            if thread is not None:
                self.threads.set_archived(thread.id, user_id, True)
        else:
            self.blocks.remove(user_id, other_id)

    def _require_can_send(self, sender_id: int, recipient_id: int) -> None:
        allowed, reason = self.can_send(sender_id, recipient_id)
        if not allowed:
            raise MessagingBlockedError(str(reason))

    def _deliver(self, thread_id: int, sender_id: int, body: str) -> int:
        message_id = self.messages.append(thread_id, sender_id, body)
        self.threads.update_last_message(thread_id, message_id)
        self.threads.mark_read(thread_id, sender_id, message_id)
        return message_id

