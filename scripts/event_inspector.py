"""
Scheduled Event Inspector CLI

Debug and operate on the scheduled_events table.

Usage:
    # List active events in a guild
    python scripts/event_inspector.py list --guild-id 123456789

    # List failed reminders with their failure reason
    python scripts/event_inspector.py list --status failed --type reminder -v

    # Inspect a specific event
    python scripts/event_inspector.py inspect --event-id a1b2c3d4

    # Count events per status
    python scripts/event_inspector.py stats

    # Cancel an event (a running bot stops its timer on the next fire)
    python scripts/event_inspector.py cancel --event-id a1b2c3d4
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import datetime

import asyncpg

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from scheduling.models import EventStatus, EventType, ScheduledEvent  # noqa: E402
from scheduling.store import EventStore  # noqa: E402
from scheduling.time_parser import describe_cron  # noqa: E402

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
)
logger = logging.getLogger(__name__)


def format_datetime(dt: datetime) -> str:
    """Format datetime for display."""
    if dt is None:
        return "Never"
    return dt.strftime("%Y-%m-%d %H:%M:%S %Z")


def truncate(text: str, max_len: int = 80) -> str:
    """Truncate text with ellipsis."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def print_event(event: ScheduledEvent, verbose: bool = False) -> None:
    schedule = describe_cron(event.cron_schedule)
    logger.info(
        f"[{event.event_id}] {event.event_type.value.upper()} | {event.status.value} | {schedule}"
    )
    logger.info(f"    Guild: {event.guild_id}  Creator: {event.creator_id}")
    logger.info(f"    Channel: {event.channel_id or 'DM'}")
    logger.info(f"    Next: {format_datetime(event.next_execute_at)}")

    if verbose:
        logger.info(f"    Payload: {truncate(event.payload, 70)}")
        logger.info(f"    Timezone: {event.timezone}")
        logger.info(
            f"    Runs: {event.execution_count}"
            + (f"/{event.max_executions}" if event.max_executions else "")
        )
        logger.info(f"    Last run: {format_datetime(event.last_executed_at)}")
        if event.failure_reason:
            logger.info(f"    Failure: {event.failure_reason}")
    logger.info("")


async def list_events(store: EventStore, args) -> None:
    filters = {"status": args.status}
    if args.guild_id:
        filters["guild_id"] = args.guild_id
    if args.creator_id:
        filters["creator_id"] = args.creator_id
    if args.type:
        filters["event_type"] = args.type

    events = await store.find_all(filters, limit=args.limit, order_by="next_execute_at")

    if not events:
        logger.info("No events found matching the criteria.")
        return

    logger.info(f"\n{'='*80}")
    logger.info(f"Found {len(events)} events")
    logger.info(f"{'='*80}\n")

    for event in events:
        print_event(event, verbose=args.verbose)


async def inspect_event(store: EventStore, event_id: str) -> None:
    event = await store.find_one(event_id=event_id)
    if event is None:
        logger.error(f"Event {event_id} not found")
        sys.exit(1)

    print_event(event, verbose=True)
    if event.metadata:
        logger.info(json.dumps(event.metadata, indent=2))


async def show_stats(store: EventStore, guild_id: int = None) -> None:
    counts = await store.count_by_status(guild_id)
    total = sum(counts.values())

    logger.info(f"\n{'='*40}")
    logger.info(f"Scheduled events: {total}")
    logger.info(f"{'='*40}")
    for status in EventStatus:
        logger.info(f"  {status.value:<10} {counts.get(status.value, 0)}")


async def cancel_event(store: EventStore, event_id: str) -> None:
    updated = await store.update(
        {"status": EventStatus.CANCELLED},
        event_id=event_id,
        status=EventStatus.ACTIVE,
    )
    if updated:
        logger.info(f"Cancelled event {event_id}")
    else:
        logger.error(f"No active event {event_id}")
        sys.exit(1)


async def main_async(args):
    """Async main function."""
    db_url = os.environ.get("DATABASE_URL")
    if not db_url:
        logger.error("DATABASE_URL environment variable required")
        sys.exit(1)

    pool = await asyncpg.create_pool(db_url, min_size=1, max_size=2)
    store = EventStore(pool)

    try:
        if args.command == "list":
            await list_events(store, args)
        elif args.command == "inspect":
            await inspect_event(store, args.event_id)
        elif args.command == "stats":
            await show_stats(store, args.guild_id)
        elif args.command == "cancel":
            await cancel_event(store, args.event_id)
    finally:
        await pool.close()


def main():
    parser = argparse.ArgumentParser(
        description="Scheduled Event Inspector CLI - Debug and operate the scheduler"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # List command
    list_parser = subparsers.add_parser("list", help="List events")
    list_parser.add_argument("--guild-id", type=int, help="Filter by guild ID")
    list_parser.add_argument("--creator-id", type=int, help="Filter by creator ID")
    list_parser.add_argument(
        "--type", choices=[t.value for t in EventType], help="Filter by event type"
    )
    list_parser.add_argument(
        "--status",
        choices=[s.value for s in EventStatus],
        default="active",
        help="Filter by status (default: active)",
    )
    list_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show full details"
    )
    list_parser.add_argument(
        "--limit", type=int, default=50, help="Max results (default: 50)"
    )

    # Inspect command
    inspect_parser = subparsers.add_parser("inspect", help="Inspect a specific event")
    inspect_parser.add_argument("--event-id", required=True, help="Event ID")

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Count events per status")
    stats_parser.add_argument("--guild-id", type=int, help="Limit to one guild")

    # Cancel command
    cancel_parser = subparsers.add_parser("cancel", help="Cancel an active event")
    cancel_parser.add_argument("--event-id", required=True, help="Event ID")

    args = parser.parse_args()
    asyncio.run(main_async(args))


if __name__ == "__main__":
    main()
