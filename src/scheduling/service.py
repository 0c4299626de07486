# Herald - Discord Scheduling Bot
# Copyright (c) 2025-2026 Slash Daemon slashdaemon@protonmail.com
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, version 3 of the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#
# Commercial licensing: [slashdaemon@protonmail.com]

"""
Scheduler Service

Orchestrates scheduled events: accepts new events, persists them, polls for
due one-time events, keeps a live timer per recurring event, resolves the
delivery target, invokes the event's handler and records the outcome.

Status lifecycle:
    active -> completed | cancelled | failed
Recurring events stay active after each successful run (with an updated
next_execute_at) until they are cancelled, fail, or reach max_executions.

One SchedulerService instance is assumed per event store: due events are
not claimed before processing.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Optional, Union

import discord
import pytz
from croniter import croniter
from discord.ext import tasks

from analytics import track

from .config import SchedulerConfig
from .handlers.base import EventContext, EventHandler, EventResult
from .models import (
    EventPayload,
    EventStatus,
    EventType,
    ScheduledEvent,
    ScheduleType,
    encode_payload,
    generate_event_id,
)
from .store import EventStore
from .time_parser import get_next_cron_execution, validate_timezone

logger = logging.getLogger("herald.scheduling.service")


class SchedulerError(Exception):
    """Base class for errors raised to callers of the scheduler."""

    pass


class EventValidationError(SchedulerError, ValueError):
    """Raised when an event (or its payload) is rejected at schedule time."""

    pass


class IdGenerationExhausted(SchedulerError):
    """Raised when no free event id was found within the retry budget."""

    pass


def _task_key(event_id: str) -> str:
    return f"event_{event_id}"


def _ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def next_run_after(
    cron_schedule: Optional[str], reference: datetime, timezone: str = "UTC"
) -> Optional[datetime]:
    """
    Next execution time for a cron schedule, in UTC.

    Uses the built-in subset first and croniter for any other valid shape.
    """
    if not cron_schedule:
        return None
    next_at = get_next_cron_execution(cron_schedule, reference, timezone)
    if next_at is not None or not croniter.is_valid(cron_schedule):
        return next_at
    tz = pytz.timezone(timezone) if validate_timezone(timezone) else pytz.UTC
    return croniter(cron_schedule, reference.astimezone(tz)).get_next(datetime).astimezone(pytz.UTC)


class SchedulerService:
    """
    Generic persistence-backed scheduler for deferred and recurring actions.

    Handlers, cron timers and the polling loop all belong to this instance;
    several instances (e.g. in tests) can coexist.
    """

    def __init__(
        self,
        client: discord.Client,
        store: EventStore,
        config: Optional[SchedulerConfig] = None,
    ):
        """
        Initialize the scheduler service.

        Args:
            client: Discord client used to resolve channels and users
            store: Event store
            config: Scheduler configuration (defaults if omitted)
        """
        self.client = client
        self.store = store
        self.config = config or SchedulerConfig()
        self._handlers: dict[EventType, EventHandler] = {}
        self._cron_tasks: dict[str, asyncio.Task] = {}
        self._shutting_down = False

        self._poll_loop.change_interval(seconds=self.config.poll_interval_seconds)

    # =========================================================================
    # Handler registry
    # =========================================================================

    def register_handler(self, handler: EventHandler) -> None:
        """Register the handler for its event type (last registration wins)."""
        self._handlers[handler.event_type] = handler
        logger.debug(f"Registered event handler for type: {handler.event_type.value}")

    def get_handler(self, event_type: Union[EventType, str]) -> Optional[EventHandler]:
        return self._handlers.get(EventType(event_type))

    @property
    def registered_types(self) -> list[EventType]:
        return list(self._handlers)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        """Start polling for one-time events and arm timers for recurring ones."""
        try:
            logger.info("Initializing scheduler service")
            self._shutting_down = False

            if not self._poll_loop.is_running():
                self._poll_loop.start()

            await self._load_recurring_events()

            logger.info(
                f"Scheduler service initialized: "
                f"handlers={[t.value for t in self._handlers]}, "
                f"cron_timers={len(self._cron_tasks)}, "
                f"poll_interval={self.config.poll_interval_seconds}s"
            )
        except Exception as e:
            logger.error(f"Failed to initialize scheduler service: {e}", exc_info=True)

    def shutdown(self) -> None:
        """Stop polling and every cron timer. In-flight executions are not aborted."""
        self._shutting_down = True

        logger.info(f"Shutting down scheduler service ({len(self._cron_tasks)} cron timer(s))")

        self._poll_loop.cancel()

        for task in self._cron_tasks.values():
            task.cancel()
        self._cron_tasks.clear()

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    @property
    def active_timer_count(self) -> int:
        return len(self._cron_tasks)

    def has_timer(self, event_id: str) -> bool:
        return _task_key(event_id) in self._cron_tasks

    # =========================================================================
    # Polling (one-time events)
    # =========================================================================

    @tasks.loop(seconds=30)
    async def _poll_loop(self) -> None:
        """One poll tick."""
        if self._shutting_down:
            return
        # Cancelling the loop must not abort events already being executed
        await asyncio.shield(self._process_one_time_events())

    async def _process_one_time_events(self) -> None:
        """Execute due one-time events, one at a time."""
        try:
            now = datetime.now(pytz.UTC)
            due_events = await self.store.find_all(
                {
                    "status": EventStatus.ACTIVE,
                    "schedule_type": ScheduleType.ONCE,
                    "execute_at__lte": now,
                },
                limit=self.config.poll_batch_size,
                order_by="execute_at",
            )

            if not due_events:
                return

            logger.info(f"Processing {len(due_events)} due one-time event(s)")

            for event in due_events:
                await self.execute_event(event)

        except Exception as e:
            logger.error(f"Error processing one-time events: {e}", exc_info=True)
            track(
                "scheduler_error",
                "error",
                properties={
                    "stage": "poll",
                    "error_type": type(e).__name__,
                    "error_message": str(e)[:200],
                },
            )

    # =========================================================================
    # Cron timers (recurring events)
    # =========================================================================

    async def _load_recurring_events(self) -> None:
        """Arm a timer for every active recurring/cron event."""
        try:
            recurring = await self.store.find_all(
                {
                    "status": EventStatus.ACTIVE,
                    "schedule_type": [ScheduleType.RECURRING, ScheduleType.CRON],
                }
            )
        except Exception as e:
            logger.error(f"Error loading recurring events: {e}", exc_info=True)
            return

        armed = 0
        for event in recurring:
            if event.cron_schedule and self._schedule_cron_task(event):
                armed += 1

        logger.info(f"Loaded {len(recurring)} recurring event(s), armed {armed} timer(s)")

    def _schedule_cron_task(self, event: ScheduledEvent) -> bool:
        """
        Start (or restart) the live timer for a recurring event.

        Returns:
            True if a timer is running, False if the cron schedule is unusable
        """
        self._stop_cron_task(event.event_id)

        if not event.cron_schedule:
            return False

        if not croniter.is_valid(event.cron_schedule):
            logger.error(
                f"Invalid cron schedule for event {event.event_id}: "
                f"'{event.cron_schedule}' - no timer scheduled"
            )
            return False

        key = _task_key(event.event_id)
        self._cron_tasks[key] = asyncio.create_task(
            self._run_cron_timer(event.event_id, event.cron_schedule, event.timezone),
            name=key,
        )
        logger.debug(f"Scheduled cron timer for event {event.event_id}: '{event.cron_schedule}'")
        return True

    def _stop_cron_task(self, event_id: str) -> bool:
        task = self._cron_tasks.pop(_task_key(event_id), None)
        if task is None:
            return False
        task.cancel()
        return True

    async def _run_cron_timer(self, event_id: str, cron_schedule: str, timezone: str) -> None:
        """Sleep until each fire time, then execute the (freshly loaded) event."""
        key = _task_key(event_id)
        tz = pytz.timezone(timezone) if validate_timezone(timezone) else pytz.UTC

        try:
            while not self._shutting_down:
                now = datetime.now(tz)
                fire_at = croniter(cron_schedule, now).get_next(datetime)
                await asyncio.sleep(max((fire_at - now).total_seconds(), 0))

                if self._shutting_down:
                    break

                try:
                    event = await self.store.find_one(event_id=event_id)
                except Exception as e:
                    logger.error(f"Failed to load recurring event {event_id}: {e}", exc_info=True)
                    continue

                if event is None or event.status != EventStatus.ACTIVE:
                    logger.info(f"Recurring event {event_id} is no longer active, stopping timer")
                    break

                status = await asyncio.shield(self.execute_event(event))
                if status != EventStatus.ACTIVE:
                    break
        finally:
            if self._cron_tasks.get(key) is asyncio.current_task():
                del self._cron_tasks[key]

    # =========================================================================
    # Execution
    # =========================================================================

    async def _resolve_target(
        self, event: ScheduledEvent, payload: EventPayload
    ) -> Optional[discord.abc.Messageable]:
        """Find where an event should be delivered; None if unreachable."""
        if getattr(payload, "send_dm", False):
            try:
                user = self.client.get_user(event.creator_id)
                if user is None:
                    user = await self.client.fetch_user(event.creator_id)
                return await user.create_dm()
            except Exception as e:
                logger.warning(
                    f"Could not create DM channel for event {event.event_id} "
                    f"(creator {event.creator_id}): {e}"
                )
                return None

        if event.channel_id:
            channel = self.client.get_channel(event.channel_id)
            if isinstance(channel, discord.abc.Messageable):
                return channel

        return None

    async def execute_event(self, event: ScheduledEvent) -> EventStatus:
        """
        Run an event's handler and record the outcome.

        Never raises; handler and persistence errors are logged.

        Returns:
            The status the event was left in
        """
        start_time = time.monotonic()

        handler = self._handlers.get(event.event_type)
        if handler is None:
            logger.error(
                f"No handler registered for event type '{event.event_type.value}' "
                f"(event {event.event_id})"
            )
            return await self._mark_failed(event, "No handler registered")

        try:
            payload = event.decoded_payload()
            target = await self._resolve_target(event, payload)
            ctx = EventContext(event=event, target=target, payload=payload, scheduler=self)
            result = await handler.execute(ctx)
        except Exception as e:
            logger.error(f"Error executing event {event.event_id}: {e}", exc_info=True)
            result = EventResult(success=False, message=f"Execution error: {e}"[:200], error=e)

        elapsed_ms = int((time.monotonic() - start_time) * 1000)

        if not result.success:
            logger.warning(
                f"Event {event.event_id} ({event.event_type.value}) failed "
                f"after {elapsed_ms}ms: {result.message}"
            )
            track(
                "scheduled_event_failed",
                "scheduler",
                user_id=event.creator_id,
                guild_id=event.guild_id,
                properties={
                    "event_id": event.event_id,
                    "event_type": event.event_type.value,
                    "reason": result.message,
                    "error_type": type(result.error).__name__ if result.error else None,
                },
            )
            return await self._mark_failed(event, result.message or "Execution failed")

        logger.info(
            f"Event {event.event_id} ({event.event_type.value}) executed in {elapsed_ms}ms"
        )
        track(
            "scheduled_event_executed",
            "scheduler",
            user_id=event.creator_id,
            guild_id=event.guild_id,
            properties={
                "event_id": event.event_id,
                "event_type": event.event_type.value,
                "schedule_type": event.schedule_type.value,
                "processing_ms": elapsed_ms,
            },
        )

        if result.should_reschedule and event.schedule_type != ScheduleType.ONCE:
            return await self._reschedule(event)
        return await self._mark_completed(event)

    async def _mark_completed(self, event: ScheduledEvent) -> EventStatus:
        try:
            await self.store.update(
                {
                    "status": EventStatus.COMPLETED,
                    "last_executed_at": datetime.now(pytz.UTC),
                    "execution_count": event.execution_count + 1,
                },
                event_id=event.event_id,
                status=EventStatus.ACTIVE,
            )
        except Exception as e:
            logger.error(f"Failed to mark event {event.event_id} as completed: {e}", exc_info=True)
        return EventStatus.COMPLETED

    async def _mark_failed(self, event: ScheduledEvent, reason: str) -> EventStatus:
        metadata = dict(event.metadata or {})
        metadata["failure_reason"] = reason
        try:
            await self.store.update(
                {
                    "status": EventStatus.FAILED,
                    "last_executed_at": datetime.now(pytz.UTC),
                    "metadata": metadata,
                },
                event_id=event.event_id,
                status=EventStatus.ACTIVE,
            )
        except Exception as e:
            logger.error(f"Failed to mark event {event.event_id} as failed: {e}", exc_info=True)
        return EventStatus.FAILED

    async def _reschedule(self, event: ScheduledEvent) -> EventStatus:
        execution_count = event.execution_count + 1
        if event.max_executions is not None and execution_count >= event.max_executions:
            logger.info(
                f"Recurring event {event.event_id} reached max executions "
                f"({event.max_executions}), completing"
            )
            return await self._mark_completed(event)

        now = datetime.now(pytz.UTC)
        next_execute_at = next_run_after(event.cron_schedule, now, event.timezone)

        try:
            await self.store.update(
                {
                    "last_executed_at": now,
                    "next_execute_at": next_execute_at,
                    "execution_count": execution_count,
                },
                event_id=event.event_id,
                status=EventStatus.ACTIVE,
            )
            logger.info(f"Recurring event {event.event_id} rescheduled, next at {next_execute_at}")
        except Exception as e:
            logger.error(f"Failed to reschedule event {event.event_id}: {e}", exc_info=True)
        return EventStatus.ACTIVE

    # =========================================================================
    # Public operations
    # =========================================================================

    async def _generate_unique_id(self) -> str:
        for _ in range(self.config.id_generation_attempts):
            candidate = generate_event_id()
            if await self.store.find_one(event_id=candidate) is None:
                return candidate
        raise IdGenerationExhausted(
            f"Failed to generate a unique event ID after {self.config.id_generation_attempts} attempts"
        )

    async def schedule_event(
        self,
        guild_id: int,
        creator_id: int,
        event_type: Union[EventType, str],
        payload: Union[EventPayload, dict[str, Any]],
        schedule_type: Union[ScheduleType, str] = ScheduleType.ONCE,
        channel_id: Optional[int] = None,
        execute_at: Optional[datetime] = None,
        cron_schedule: Optional[str] = None,
        timezone: Optional[str] = None,
        max_executions: Optional[int] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ScheduledEvent:
        """
        Persist a new event and arm its timer if it recurs.

        Args:
            guild_id: Guild the event belongs to
            creator_id: User who created the event
            event_type: Selects the handler
            payload: Handler-specific payload (dataclass or dict)
            schedule_type: once, recurring or cron
            channel_id: Delivery channel (None = DM)
            execute_at: When a one-time event runs
            cron_schedule: 5-field CRON string for recurring events
            timezone: IANA timezone for the cron schedule
            max_executions: Complete a recurring event after this many runs
            metadata: Free-form extra data

        Returns:
            The persisted event

        Raises:
            EventValidationError: If the payload or schedule is invalid
            IdGenerationExhausted: If no unique event id could be generated
        """
        event_type = EventType(event_type)
        schedule_type = ScheduleType(schedule_type)

        if not isinstance(payload, dict):
            payload = payload.to_dict()

        handler = self._handlers.get(event_type)
        if handler is not None:
            validation = handler.validate(payload)
            if not validation.valid:
                raise EventValidationError(validation.error or "Invalid payload")

        if schedule_type == ScheduleType.ONCE:
            if execute_at is None:
                raise EventValidationError("One-time events need an execution time")
            cron_schedule = None
        elif not cron_schedule:
            raise EventValidationError(f"{schedule_type.value} events need a cron schedule")

        if max_executions is not None and max_executions < 1:
            raise EventValidationError("max_executions must be at least 1")

        tz_name = timezone or self.config.default_timezone
        if not validate_timezone(tz_name):
            logger.warning(
                f"Invalid timezone '{tz_name}', falling back to {self.config.default_timezone}"
            )
            tz_name = self.config.default_timezone

        event_id = await self._generate_unique_id()

        if execute_at is not None:
            execute_at = _ensure_utc(execute_at)
        now = datetime.now(pytz.UTC)
        next_execute_at = execute_at or next_run_after(cron_schedule, now, tz_name)

        event = ScheduledEvent(
            event_id=event_id,
            guild_id=guild_id,
            channel_id=channel_id,
            creator_id=creator_id,
            event_type=event_type,
            payload=encode_payload(payload),
            schedule_type=schedule_type,
            execute_at=execute_at,
            cron_schedule=cron_schedule,
            timezone=tz_name,
            status=EventStatus.ACTIVE,
            next_execute_at=next_execute_at,
            execution_count=0,
            max_executions=max_executions,
            metadata=metadata,
        )

        try:
            stored = await self.store.create(event)
        except Exception as e:
            logger.error(f"Failed to persist event {event_id}: {e}", exc_info=True)
            raise

        if stored.is_recurring and stored.cron_schedule:
            self._schedule_cron_task(stored)

        logger.info(
            f"Scheduled new event {event_id}: type={event_type.value}, "
            f"schedule={schedule_type.value}, next={next_execute_at}"
        )
        track(
            "scheduled_event_created",
            "scheduler",
            user_id=creator_id,
            channel_id=channel_id,
            guild_id=guild_id,
            properties={
                "event_id": event_id,
                "event_type": event_type.value,
                "schedule_type": schedule_type.value,
            },
        )
        return stored

    async def cancel_event(self, event_id: str, requester_id: Optional[int] = None) -> bool:
        """
        Cancel an active event.

        Args:
            event_id: Event to cancel
            requester_id: If given, only the event's creator may cancel it

        Returns:
            True if cancelled, False if not found, not owned, or on error
        """
        try:
            filters: dict[str, Any] = {"event_id": event_id, "status": EventStatus.ACTIVE}
            if requester_id is not None:
                filters["creator_id"] = requester_id

            event = await self.store.find_one(**filters)
            if event is None:
                return False

            updated = await self.store.update(
                {"status": EventStatus.CANCELLED},
                event_id=event_id,
                status=EventStatus.ACTIVE,
            )
            self._stop_cron_task(event_id)

            if not updated:
                return False

            logger.info(f"Cancelled scheduled event {event_id}")
            track(
                "scheduled_event_cancelled",
                "scheduler",
                user_id=requester_id,
                guild_id=event.guild_id,
                properties={"event_id": event_id, "event_type": event.event_type.value},
            )
            return True

        except Exception as e:
            logger.error(f"Failed to cancel event {event_id}: {e}", exc_info=True)
            return False

    async def get_event(self, event_id: str) -> Optional[ScheduledEvent]:
        """Get an event by id, in any status."""
        return await self.store.find_one(event_id=event_id)

    async def list_events(
        self,
        guild_id: int,
        event_type: Optional[Union[EventType, str]] = None,
        creator_id: Optional[int] = None,
        status: Optional[Union[EventStatus, str]] = None,
        limit: Optional[int] = None,
    ) -> list[ScheduledEvent]:
        """
        List a guild's events, soonest first.

        Defaults to active events and the configured page size.
        """
        filters: dict[str, Any] = {
            "guild_id": guild_id,
            "status": EventStatus(status) if status else EventStatus.ACTIVE,
        }
        if event_type:
            filters["event_type"] = EventType(event_type)
        if creator_id is not None:
            filters["creator_id"] = creator_id

        return await self.store.find_all(
            filters,
            limit=limit or self.config.list_default_limit,
            order_by="next_execute_at",
        )

    def format_event(self, event: ScheduledEvent) -> str:
        """Short display text for an event, via its handler when available."""
        handler = self._handlers.get(event.event_type)
        if handler is None:
            return f"{event.event_type.value} event"
        return handler.format_display(event)
