"""Command-line front end for Inbox Triage."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from inbox_triage.config.settings import InboxTriageSettings
from inbox_triage.core.models import ProcessingProgress
from inbox_triage.core.prompts import context_for_intent, reply_template
from inbox_triage.pipeline.bootstrap import TriageServices, build_services


def setup_logging(level: str) -> None:
    """Configure logging with timestamp and module info."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def on_progress(progress: ProcessingProgress) -> None:
    """Print progress updates to stdout."""
    print(
        f"[{progress.current_stage}] "
        f"seen={progress.messages_seen} "
        f"classified={progress.messages_classified} "
        f"rate_limited={progress.messages_rate_limited} "
        f"ignored={progress.messages_ignored}",
        end="\r",
        flush=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inbox Triage - Classify Gmail messages and label them"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("list-labels", help="List all Gmail labels")

    list_parser = subparsers.add_parser("list", help="List one page of messages")
    list_parser.add_argument("--page-token", dest="page_token", help="Gmail page token")

    process_parser = subparsers.add_parser("process", help="Classify unprocessed messages")
    process_parser.add_argument(
        "--max-batches",
        type=int,
        default=None,
        dest="max_batches",
        help="Stop after this many batches (default: until no mail remains)",
    )

    thread_parser = subparsers.add_parser("thread", help="Show a conversation")
    thread_parser.add_argument("thread_id")

    archive_parser = subparsers.add_parser("archive", help="Remove a message from the inbox")
    archive_parser.add_argument("message_id")

    trash_parser = subparsers.add_parser("trash", help="Move a message to the trash")
    trash_parser.add_argument("message_id")

    draft_parser = subparsers.add_parser(
        "draft-reply", help="Draft a reply to the latest message of a thread"
    )
    draft_parser.add_argument("thread_id")
    draft_parser.add_argument(
        "--intent", default="", help="Reply intent, e.g. support or pricing"
    )

    return parser


def _validate_args(args: argparse.Namespace) -> None:
    """Reject non-positive batch limits."""
    if getattr(args, "max_batches", None) is not None and args.max_batches <= 0:
        print("Error: --max-batches must be positive", file=sys.stderr)
        sys.exit(1)


async def run_process(services: TriageServices, max_batches: int | None) -> int:
    """Run batches until no mail remains, returning the number attempted."""
    processor = services.processor
    processor.reset_pagination()
    total = 0
    batches = 0
    while max_batches is None or batches < max_batches:
        result = await processor.process_next_batch()
        batches += 1
        total += result.processed_count
        if not result.has_more:
            break
    return total


async def run_command(args: argparse.Namespace, services: TriageServices) -> None:
    gateway = services.gateway

    if args.command == "list-labels":
        labels = await gateway.list_labels()
        print(f"\nFound {len(labels)} labels:\n")
        for label in sorted(labels, key=lambda x: x.name):
            print(f"  {label.id:40s} {label.name}")

    elif args.command == "list":
        page = await gateway.get_messages_page(args.page_token)
        for message in page.messages:
            labels = ", ".join(sorted(message.labels))
            print(f"  {message.id}  {message.sender[:30]:30s}  {message.subject[:50]:50s}  [{labels}]")
        if page.next_page_token:
            print(f"\nNext page token: {page.next_page_token}")

    elif args.command == "process":
        total = await run_process(services, args.max_batches)
        print(f"\n\nProcessed {total} messages")

    elif args.command == "thread":
        for message in await gateway.get_thread(args.thread_id):
            print(f"--- {message.date:%Y-%m-%d %H:%M}  {message.sender}")
            print(f"Subject: {message.subject}\n")
            print(message.body or message.snippet)
            print()

    elif args.command == "archive":
        await gateway.archive_message(args.message_id)
        print(f"Archived {args.message_id}")

    elif args.command == "trash":
        await gateway.trash_message(args.message_id)
        print(f"Trashed {args.message_id}")

    elif args.command == "draft-reply":
        thread = await gateway.get_thread(args.thread_id)
        if not thread:
            print(f"Thread {args.thread_id} has no messages", file=sys.stderr)
            sys.exit(1)
        latest = thread[-1]
        content = f"{latest.subject}\n{latest.body or latest.snippet}"
        reply = await services.classifier.generate_draft_reply(
            content, context_for_intent(args.intent)
        )
        if not reply:
            # Empty completion: start the draft from the canned opener instead.
            reply = reply_template(args.intent.lower().strip())
        draft_id = await gateway.create_draft(
            to=latest.sender,
            subject=f"Re: {latest.subject}",
            body=reply,
            thread_id=latest.thread_id,
        )
        print(f"Created draft {draft_id}:\n\n{reply}")


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    _validate_args(args)

    settings = InboxTriageSettings()
    setup_logging(settings.log_level)

    try:
        services = build_services(settings, on_progress=on_progress)
        asyncio.run(run_command(args, services))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
