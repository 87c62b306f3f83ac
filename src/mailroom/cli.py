"""Command-line entry point for Mailroom."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from mailroom.core import AppSettings, configure_logging, load_app_settings
from mailroom.core.models import ProcessingStatus
from mailroom.ingestion import MessageProcessor
from mailroom.intelligence import (
    ConciergeAgent,
    OllamaAgent,
    ReplyComposer,
    ReplyWorkflow,
)
from mailroom.mailbox import (
    MailboxConfig,
    MailboxReader,
    MessageWriter,
    UnknownEndpointError,
    default_mailbox_config,
)
from mailroom.routing import MessageRouter, ResponderRegistry, default_router_config
from mailroom.storage import SqliteStatusStore

CONCIERGE_AGENT_ID = "conciergeAgent"
MESSAGE_WORKFLOW_ID = "messageWorkflow"


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Mailroom file-based message router")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=["info", "watch", "send", "statuses", "messages"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "--endpoint",
        default="inbox",
        help="Endpoint used by the send and messages commands (default: inbox).",
    )
    parser.add_argument(
        "--from",
        dest="sender",
        default="cli",
        help="Sender recorded on submitted messages (default: cli).",
    )
    parser.add_argument("--subject", default=None, help="Subject for send.")
    parser.add_argument(
        "--body",
        default=None,
        help="Message body for send; read from stdin when omitted.",
    )
    parser.add_argument(
        "--type",
        dest="message_type",
        default=None,
        help="Optional message type used for routing (e.g. question, task).",
    )
    parser.add_argument(
        "--reply-to",
        dest="reply_to",
        default=None,
        help="Id of the message this one answers.",
    )
    parser.add_argument(
        "--severity",
        default=None,
        help="Severity metadata, required by the bugs endpoint.",
    )
    parser.add_argument(
        "--status",
        choices=[*(status.value for status in ProcessingStatus), "all"],
        default="all",
        help="Status filter for the statuses command (default: all).",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Limit for listings; set to 0 for no limit (default: 20).",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> int:
    """Execute the requested CLI command and return the exit code."""
    mailbox = default_mailbox_config(settings.mailbox.resolve_root())
    command = args.command
    if command == "info":
        _print_info(settings, mailbox)
        return 0
    if command == "watch":
        try:
            asyncio.run(_run_watch(settings, mailbox))
        except KeyboardInterrupt:
            print("Stopped.")
        return 0
    if command == "send":
        return asyncio.run(_run_send(args, mailbox))
    if command == "statuses":
        asyncio.run(_run_statuses(settings, status=args.status, limit=args.limit))
        return 0
    if command == "messages":
        return asyncio.run(_run_messages(mailbox, args.endpoint, limit=args.limit))
    return 1


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    sys.exit(execute(args, settings))


def build_processor(
    settings: AppSettings,
    mailbox: MailboxConfig,
    store: SqliteStatusStore,
    llm: OllamaAgent,
) -> MessageProcessor:
    """Assemble the stock responders, router and processor."""
    composer = ReplyComposer(llm, MailboxReader(mailbox), MessageWriter(mailbox))
    responders = ResponderRegistry(
        agents={CONCIERGE_AGENT_ID: ConciergeAgent(llm, composer)},
        workflows={MESSAGE_WORKFLOW_ID: ReplyWorkflow(composer)},
    )
    router = MessageRouter(default_router_config(), responders, mailbox=mailbox)
    return MessageProcessor(
        mailbox,
        router,
        store,
        force_polling=settings.watch.force_polling,
        stability_threshold=settings.watch.stability_threshold_ms / 1000,
        stability_poll_interval=settings.watch.stability_poll_ms / 1000,
    )


def _print_info(settings: AppSettings, mailbox: MailboxConfig) -> None:
    print("Mailroom is ready. Drop markdown messages into an inbox endpoint.")
    print(f"Mailbox root: {mailbox.root_path}")
    print(f"Database path: {settings.storage.db_path}")
    print(f"LLM: {settings.llm.model} at {settings.llm.base_url}")
    print("Endpoints:")
    for endpoint in mailbox.list_endpoints():
        required = ", ".join(mailbox.required_fields(endpoint))
        print(
            f"  {endpoint.id:<18} {endpoint.direction.value:<13} "
            f"{mailbox.endpoint_path(endpoint.id)}  (required: {required})"
        )


async def _run_watch(settings: AppSettings, mailbox: MailboxConfig) -> None:
    """Watch inbound endpoints until interrupted."""
    await asyncio.to_thread(_ensure_directories, mailbox)
    llm = OllamaAgent(settings.llm)
    with SqliteStatusStore(settings.storage) as store:
        processor = build_processor(settings, mailbox, store, llm)
        await processor.start()
        print(f"Watching {mailbox.root_path}. Press Ctrl+C to stop.")
        try:
            await asyncio.Event().wait()
        finally:
            await processor.stop()
            await processor.drain()
            await llm.aclose()


async def _run_send(args: argparse.Namespace, mailbox: MailboxConfig) -> int:
    """Submit one message into an inbound endpoint."""
    body = args.body if args.body is not None else sys.stdin.read()
    extra: dict[str, str] = {}
    if args.severity:
        extra["severity"] = args.severity
    writer = MessageWriter(mailbox)
    try:
        path = await writer.submit(
            args.endpoint,
            sender=args.sender,
            subject=args.subject or "(no subject)",
            body=body,
            message_type=args.message_type,
            reply_to=args.reply_to,
            extra_metadata=extra,
        )
    except (UnknownEndpointError, ValueError) as exc:
        print(f"Send failed: {exc}")
        return 1
    print(f"Message written to {path}")
    return 0


async def _run_statuses(settings: AppSettings, *, status: str, limit: int) -> None:
    """List processing status records, newest first."""
    limit_value = None if limit <= 0 else limit
    status_filter = None if status == "all" else ProcessingStatus(status)

    with SqliteStatusStore(settings.storage) as store:
        records = await store.list(filter_status=status_filter, limit=limit_value)

    if not records:
        print("No message statuses found.")
        return

    print(f"Showing {len(records)} message status(es):")
    header = f"{'Status':<10}  {'Endpoint':<16}  {'Created':<16}  Filename"
    print(header)
    print("-" * len(header))
    for record in records:
        created = record.created_at.isoformat(timespec="minutes")
        detail = record.error or record.summary or ""
        line = (
            f"{record.status.value:<10}  {record.endpoint:<16}  {created:<16}  "
            f"{record.filename}"
        )
        print(f"{line}  {detail}" if detail else line)


async def _run_messages(mailbox: MailboxConfig, endpoint_id: str, *, limit: int) -> int:
    """List messages currently stored in an endpoint."""
    reader = MailboxReader(mailbox)
    try:
        summaries = await reader.list_messages(
            endpoint_id, limit=None if limit <= 0 else limit
        )
    except UnknownEndpointError as exc:
        print(f"Listing failed: {exc}")
        return 1

    if not summaries:
        print(f"No messages in {endpoint_id}.")
        return 0

    print(f"Showing {len(summaries)} message(s) in {endpoint_id}:")
    for summary in summaries:
        sender = summary.sender or "(unknown)"
        subject = summary.subject or "(no subject)"
        print(f"  {summary.filename:<40} {sender:<20} {subject}")
    return 0


def _ensure_directories(mailbox: MailboxConfig) -> None:
    for endpoint in mailbox.list_endpoints():
        mailbox.endpoint_path(endpoint.id).mkdir(parents=True, exist_ok=True)


if __name__ == "__main__":
    main()
