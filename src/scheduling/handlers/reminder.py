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
Reminder Handler

Delivers reminder events as an embed, either in the channel they were set
in or via DM to the creator.
"""

import logging
from datetime import datetime
from typing import Any

import discord
import pytz

from ..models import (
    EventType,
    PayloadDecodeError,
    ReminderPayload,
    ScheduledEvent,
    load_payload,
)
from ..time_parser import describe_cron
from .base import EventContext, EventHandler, EventResult, ValidationResult

logger = logging.getLogger("herald.scheduling.handlers.reminder")

MAX_MESSAGE_LENGTH = 500
DISPLAY_PREVIEW_LENGTH = 50


class ReminderHandler(EventHandler):
    """Handler for "reminder" events."""

    event_type = EventType.REMINDER

    async def execute(self, ctx: EventContext) -> EventResult:
        if ctx.target is None:
            return EventResult(success=False, message="Channel not found or not accessible")

        payload: ReminderPayload = ctx.payload
        event = ctx.event

        # DMs never need an @mention
        content = None
        if payload.mention_user and not payload.send_dm:
            content = f"<@{event.creator_id}>"

        try:
            await ctx.target.send(content=content, embed=self._build_embed(event, payload))
        except Exception as e:
            logger.warning(f"Failed to send reminder {event.event_id}: {e}")
            return EventResult(
                success=False,
                message="Failed to send reminder message",
                error=e,
            )

        return EventResult(success=True, should_reschedule=False)

    def _build_embed(self, event: ScheduledEvent, payload: ReminderPayload) -> discord.Embed:
        """
        Build the embed for a reminder delivery.

        Args:
            event: The event being delivered
            payload: Decoded reminder payload

        Returns:
            Discord embed
        """
        embed = discord.Embed(
            title="Reminder",
            description=payload.message,
            color=discord.Color.blurple(),
            timestamp=datetime.now(pytz.UTC),
        )

        if event.cron_schedule:
            embed.add_field(name="Schedule", value=describe_cron(event.cron_schedule), inline=True)

        embed.set_footer(text=f"Reminder ID: {event.event_id}")
        return embed

    def validate(self, payload: dict[str, Any]) -> ValidationResult:
        message = payload.get("message") if isinstance(payload, dict) else None

        if not isinstance(message, str):
            return ValidationResult(valid=False, error="Reminder message is required")

        if not message.strip():
            return ValidationResult(valid=False, error="Reminder message cannot be empty")

        if len(message) > MAX_MESSAGE_LENGTH:
            return ValidationResult(
                valid=False,
                error=f"Reminder message must be under {MAX_MESSAGE_LENGTH} characters",
            )

        for flag in ("mention_user", "send_dm"):
            if flag in payload and not isinstance(payload[flag], bool):
                return ValidationResult(valid=False, error=f"{flag} must be true or false")

        return ValidationResult(valid=True)

    def format_display(self, event: ScheduledEvent) -> str:
        try:
            message = ReminderPayload.from_dict(load_payload(event.payload)).message
            if len(message) > DISPLAY_PREVIEW_LENGTH:
                message = message[: DISPLAY_PREVIEW_LENGTH - 3] + "..."
            return f'"{message}"'
        except (PayloadDecodeError, TypeError):
            return '"Unknown reminder"'
