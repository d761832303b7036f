"""Command-line interface for DM Engine.

This module provides the main entry point for the CLI application. It is an
operator tool for inspecting and exercising a store, not an end-user client.
"""

from __future__ import annotations

import argparse
import logging
import sys

import structlog

from dm_engine import __version__
from dm_engine.config import get_settings
from dm_engine.exceptions import DMEngineError
from dm_engine.models import InboxEntry
from dm_engine.service import MessagingService
from dm_engine.utils import normalize_folder

logger = structlog.get_logger()


def _add_db_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db",
        default=None,
        help="Database URL (default: settings database_url)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dm-engine", description="Direct-messaging thread engine")
    subparsers = parser.add_subparsers(dest="command", required=True)

    db_parser = subparsers.add_parser("db", help="Manage the store schema")
    db_sub = db_parser.add_subparsers(dest="db_command", required=True)
    init_parser = db_sub.add_parser("init", help="Create or verify the schema")
    _add_db_option(init_parser)

    thread_parser = subparsers.add_parser("thread", help="Thread lookups")
    thread_sub = thread_parser.add_subparsers(dest="thread_command", required=True)
    open_parser = thread_sub.add_parser("open", help="Get or create the thread between two users")
    open_parser.add_argument("user_a", type=int)
    open_parser.add_argument("user_b", type=int)
    _add_db_option(open_parser)

    send_parser = subparsers.add_parser("send", help="Send a message to another user")
    send_parser.add_argument("sender", type=int)
    send_parser.add_argument("recipient", type=int)
    send_parser.add_argument("body")
    _add_db_option(send_parser)

    reply_parser = subparsers.add_parser("reply", help="Send a message on an existing thread")
    reply_parser.add_argument("thread", type=int)
    reply_parser.add_argument("sender", type=int)
    reply_parser.add_argument("body")
    _add_db_option(reply_parser)

    inbox_parser = subparsers.add_parser("inbox", help="List a user's threads")
    inbox_parser.add_argument("user", type=int)
    inbox_parser.add_argument("--archived", action="store_true", help="Show archived threads")
    inbox_parser.add_argument("--deleted", action="store_true", help="Show deleted threads")
    inbox_parser.add_argument(
        "--folder",
        default=None,
        help="Only threads in this folder (__inbox__ for threads without a folder)",
    )
    inbox_parser.add_argument("--limit", type=int, default=None, help="Max results")
    inbox_parser.add_argument("--offset", type=int, default=0, help="Offset")
    _add_db_option(inbox_parser)

    unread_parser = subparsers.add_parser("unread", help="Count threads with unread messages")
    unread_parser.add_argument("user", type=int)
    _add_db_option(unread_parser)

    folders_parser = subparsers.add_parser("folders", help="List a user's folders")
    folders_parser.add_argument("user", type=int)
    _add_db_option(folders_parser)

    history_parser = subparsers.add_parser("history", help="Show a thread's messages, newest first")
    history_parser.add_argument("thread", type=int)
    history_parser.add_argument("--limit", type=int, default=None, help="Max results")
    history_parser.add_argument(
        "--before", type=int, default=0, help="Only messages with an id below this one"
    )
    _add_db_option(history_parser)

    read_parser = subparsers.add_parser("read", help="Advance a user's read cursor")
    read_parser.add_argument("thread", type=int)
    read_parser.add_argument("user", type=int)
    read_parser.add_argument("message", type=int)
    _add_db_option(read_parser)

    archive_parser = subparsers.add_parser("archive", help="Archive a thread for a user")
    archive_parser.add_argument("thread", type=int)
    archive_parser.add_argument("user", type=int)
    archive_parser.add_argument("--undo", action="store_true", help="Unarchive instead")
    _add_db_option(archive_parser)

    delete_parser = subparsers.add_parser("delete", help="Delete a thread for a user")
    delete_parser.add_argument("thread", type=int)
    delete_parser.add_argument("user", type=int)
    _add_db_option(delete_parser)

    folder_parser = subparsers.add_parser("folder", help="File a thread in a folder for a user")
    folder_parser.add_argument("thread", type=int)
    folder_parser.add_argument("user", type=int)
    folder_parser.add_argument("label", help="Folder label (empty string clears it)")
    _add_db_option(folder_parser)

    block_parser = subparsers.add_parser("block", help="Block another user")
    block_parser.add_argument("user", type=int)
    block_parser.add_argument("other", type=int)
    block_parser.add_argument("--undo", action="store_true", help="Unblock instead")
    _add_db_option(block_parser)

    return parser


def _format_entry(service: MessagingService, entry: InboxEntry) -> str:
    status = "UNREAD" if entry.unread else "READ"
    at = entry.activity_at.isoformat(sep=" ") if entry.activity_at else "(never)"
    folder = entry.folder or "-"
    preview = service.preview(entry) or "(no messages)"
    return f"{entry.thread_id}\t{status}\t{at}\tuser {entry.other_user_id}\t{folder}\t{preview}"


def _no_state(args: argparse.Namespace) -> int:
    print(f"Error: user {args.user} has no thread {args.thread}", file=sys.stderr)
    return 1


def _run(service: MessagingService, args: argparse.Namespace) -> int:
    if args.command == "db":
        service.initialize()
        print("Schema ready")
        return 0

    service.initialize()

    if args.command == "thread":
        thread = service.get_or_create_thread(args.user_a, args.user_b)
        print(f"Thread {thread.id}: users {thread.participant_low} and {thread.participant_high}")
        return 0

    if args.command == "send":
        thread, message_id = service.send_message(args.sender, args.recipient, args.body)
        print(f"Sent message {message_id} on thread {thread.id}")
        return 0

    if args.command == "reply":
        message_id = service.reply(args.thread, args.sender, args.body)
        print(f"Sent message {message_id} on thread {args.thread}")
        return 0

    if args.command == "inbox":
        entries = service.inbox(
            args.user,
            folder=args.folder,
            archived=args.archived,
            deleted=True if args.deleted else None,
            limit=args.limit,
            offset=args.offset,
        )
        for entry in entries:
            print(_format_entry(service, entry))
        return 0

    if args.command == "unread":
        print(service.count_unread(args.user))
        return 0

    if args.command == "folders":
        for folder in service.list_folders(args.user):
            print(folder)
        return 0

    if args.command == "history":
        for message in service.list_messages(args.thread, limit=args.limit, before_id=args.before):
            at = message.created_at.isoformat(sep=" ") if message.created_at else ""
            print(f"{message.id}\t{at}\tuser {message.sender_id}\t{message.body}")
        return 0

    if args.command == "read":
        moved = service.mark_read(args.thread, args.user, args.message)
        print("Read cursor advanced" if moved else "Read cursor unchanged")
        return 0

    if args.command == "archive":
        if not service.set_archived(args.thread, args.user, not args.undo):
            return _no_state(args)
        print("Unarchived" if args.undo else "Archived")
        return 0

    if args.command == "delete":
        if not service.soft_delete(args.thread, args.user):
            return _no_state(args)
        print("Deleted")
        return 0

    if args.command == "folder":
        if not service.set_folder(args.thread, args.user, args.label):
            return _no_state(args)
        print(f"Folder set to {normalize_folder(args.label) or '(none)'}")
        return 0

    if args.command == "block":
        service.set_blocked(args.user, args.other, blocked=not args.undo)
        print("Unblocked" if args.undo else "Blocked")
        return 0

    logger.error("unknown_command", command=args.command)
    return 2


def main(args: list[str] | None = None) -> int:
    """Main entry point for the DM Engine CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, 1 for engine errors, 2 for usage errors).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()

    # Configure logging
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
    )

    logger.info("dm_engine_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    service: MessagingService | None = None
    try:
        service = MessagingService.from_settings(settings, database_url=parsed.db)
        return _run(service, parsed)
    except DMEngineError as exc:
        logger.error("command_failed", command=parsed.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        if service is not None:
            service.close()


if __name__ == "__main__":
    sys.exit(main())
