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
Reminder Slash Commands

Discord slash commands that create, list and cancel reminder events
through the SchedulerService.
"""

import logging
from typing import Optional

import discord
import pytz
from discord import app_commands
from discord.ext import commands

from analytics import track
from scheduling import (
    EventType,
    EventValidationError,
    ReminderPayload,
    SchedulerError,
    SchedulerService,
    ScheduleType,
    format_relative_time,
    is_future_date,
    parse_time_input,
    validate_timezone,
)
from scheduling.handlers.reminder import MAX_MESSAGE_LENGTH

logger = logging.getLogger("herald.commands.remind")

# Common timezones for autocomplete
COMMON_TIMEZONES = [
    "UTC",
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "Asia/Tokyo",
    "Asia/Kolkata",
    "Australia/Sydney",
    "Pacific/Auckland",
]

# Discord caps autocomplete choices at 25
MAX_CHOICES = 25

TIME_EXAMPLES = (
    "**Examples:**\n"
    "- `in 2 hours`\n"
    "- `tomorrow at 3pm`\n"
    "- `next friday at noon`\n"
    "- `december 25 at 9am`"
)


class RemindCommands(commands.Cog):
    """
    Slash commands for reminders.

    Commands:
    - /remind me - Remind yourself (here or via DM)
    - /remind channel - Post a reminder in this channel
    - /remind list - List your active reminders
    - /remind cancel - Cancel one of your reminders
    """

    remind_group = app_commands.Group(
        name="remind",
        description="Set reminders for yourself or the channel",
        guild_only=True,
    )

    def __init__(self, bot: commands.Bot, scheduler: SchedulerService):
        self.bot = bot
        self.scheduler = scheduler

    def _track_command(self, interaction: discord.Interaction, subcommand: str) -> None:
        track(
            "command_used",
            "command",
            user_id=interaction.user.id,
            channel_id=interaction.channel_id,
            guild_id=interaction.guild_id,
            properties={"command_name": "remind", "subcommand": subcommand},
        )

    async def _schedule_reminder(
        self,
        interaction: discord.Interaction,
        when: str,
        payload: ReminderPayload,
        channel_id: Optional[int],
        timezone: str,
    ):
        """Parse the time, schedule the event and return (event, parsed) or None."""
        parsed = parse_time_input(when, timezone=timezone)
        if parsed is None:
            await interaction.response.send_message(
                f'Could not understand "{when}".\n\n{TIME_EXAMPLES}',
                ephemeral=True,
            )
            return None

        if parsed.is_recurring:
            await interaction.response.send_message(
                "Reminders are one-time only. Try something like `tomorrow at 9am`.",
                ephemeral=True,
            )
            return None

        if not is_future_date(parsed.instant):
            await interaction.response.send_message(
                "Reminder time must be in the future.",
                ephemeral=True,
            )
            return None

        try:
            event = await self.scheduler.schedule_event(
                guild_id=interaction.guild_id,
                channel_id=channel_id,
                creator_id=interaction.user.id,
                event_type=EventType.REMINDER,
                payload=payload,
                schedule_type=ScheduleType.ONCE,
                execute_at=parsed.instant,
                timezone=parsed.timezone,
            )
        except EventValidationError as e:
            await interaction.response.send_message(str(e), ephemeral=True)
            return None
        except SchedulerError as e:
            logger.error(f"Failed to schedule reminder for {interaction.user.id}: {e}")
            await interaction.response.send_message(
                "Could not schedule that reminder. Please try again later.",
                ephemeral=True,
            )
            return None

        return event, parsed

    # =========================================================================
    # /remind me
    # =========================================================================

    @remind_group.command(name="me")
    @app_commands.describe(
        when='When to remind you (e.g., "in 2 hours", "tomorrow at 3pm")',
        message="What to remind you about",
        dm="Send the reminder via DM instead of this channel",
        timezone="Your timezone for times like '3pm' (default: UTC)",
    )
    async def remind_me(
        self,
        interaction: discord.Interaction,
        when: str,
        message: app_commands.Range[str, 1, MAX_MESSAGE_LENGTH],
        dm: bool = False,
        timezone: str = "UTC",
    ):
        """Set a personal reminder."""
        self._track_command(interaction, "me")

        if not validate_timezone(timezone):
            await interaction.response.send_message(
                f"Invalid timezone: `{timezone}`", ephemeral=True
            )
            return

        payload = ReminderPayload(message=message, mention_user=True, send_dm=dm)
        scheduled = await self._schedule_reminder(
            interaction,
            when,
            payload,
            channel_id=None if dm else interaction.channel_id,
            timezone=timezone,
        )
        if scheduled is None:
            return
        event, parsed = scheduled

        embed = discord.Embed(
            title="Reminder Set",
            description=f"I'll remind you **{parsed.display_text}**",
            color=discord.Color.green(),
            timestamp=parsed.instant,
        )
        embed.add_field(name="Message", value=message, inline=False)
        embed.add_field(name="Reminder ID", value=f"`{event.event_id}`", inline=True)
        embed.add_field(name="Delivery", value="DM" if dm else "This channel", inline=True)
        embed.set_footer(text="Reminder scheduled for")

        await interaction.response.send_message(embed=embed, ephemeral=True)

    @remind_me.autocomplete("timezone")
    async def timezone_autocomplete(
        self,
        interaction: discord.Interaction,
        current: str,
    ) -> list[app_commands.Choice[str]]:
        """Autocomplete for timezone parameter."""
        current_lower = current.lower()
        matches = [tz for tz in COMMON_TIMEZONES if current_lower in tz.lower()]

        if not matches and len(current) >= 2:
            matches = [tz for tz in pytz.common_timezones if current_lower in tz.lower()]

        return [app_commands.Choice(name=tz, value=tz) for tz in matches[:MAX_CHOICES]]

    # =========================================================================
    # /remind channel
    # =========================================================================

    @remind_group.command(name="channel")
    @app_commands.describe(
        when="When to post the reminder",
        message="The reminder message",
    )
    async def remind_channel(
        self,
        interaction: discord.Interaction,
        when: str,
        message: app_commands.Range[str, 1, MAX_MESSAGE_LENGTH],
    ):
        """Set a reminder for this channel."""
        self._track_command(interaction, "channel")

        payload = ReminderPayload(message=message, mention_user=False, send_dm=False)
        scheduled = await self._schedule_reminder(
            interaction,
            when,
            payload,
            channel_id=interaction.channel_id,
            timezone="UTC",
        )
        if scheduled is None:
            return
        event, parsed = scheduled

        embed = discord.Embed(
            title="Channel Reminder Set",
            description=f"Reminder will be posted **{parsed.display_text}**",
            color=discord.Color.green(),
            timestamp=parsed.instant,
        )
        embed.add_field(name="Message", value=message, inline=False)
        embed.add_field(name="Reminder ID", value=f"`{event.event_id}`", inline=True)
        embed.add_field(name="Channel", value=f"<#{interaction.channel_id}>", inline=True)
        embed.set_footer(text="Reminder scheduled for")

        await interaction.response.send_message(embed=embed)

    # =========================================================================
    # /remind list
    # =========================================================================

    @remind_group.command(name="list")
    async def list_reminders(self, interaction: discord.Interaction):
        """List your active reminders."""
        self._track_command(interaction, "list")

        reminders = await self.scheduler.list_events(
            interaction.guild_id,
            event_type=EventType.REMINDER,
            creator_id=interaction.user.id,
        )

        if not reminders:
            await interaction.response.send_message(
                "You have no active reminders.", ephemeral=True
            )
            return

        lines = []
        for index, reminder in enumerate(reminders, start=1):
            when = (
                format_relative_time(reminder.next_execute_at, timezone=reminder.timezone)
                if reminder.next_execute_at
                else "Unknown"
            )
            delivery = f"<#{reminder.channel_id}>" if reminder.channel_id else "(DM)"
            lines.append(
                f"**{index}.** `{reminder.event_id}`\n"
                f"{self.scheduler.format_event(reminder)}\n"
                f"{when} • {delivery}"
            )

        embed = discord.Embed(
            title="Your Active Reminders",
            description="\n\n".join(lines),
            color=discord.Color.blurple(),
        )
        embed.set_footer(text="Use /remind cancel to cancel a reminder")

        await interaction.response.send_message(embed=embed, ephemeral=True)

    # =========================================================================
    # /remind cancel
    # =========================================================================

    @remind_group.command(name="cancel")
    @app_commands.describe(reminder_id="The reminder ID")
    async def cancel_reminder(self, interaction: discord.Interaction, reminder_id: str):
        """Cancel a reminder."""
        self._track_command(interaction, "cancel")

        reminder_id = reminder_id.strip().lower()
        cancelled = await self.scheduler.cancel_event(reminder_id, interaction.user.id)

        if cancelled:
            await interaction.response.send_message(
                f"Reminder `{reminder_id}` has been cancelled.", ephemeral=True
            )
        else:
            await interaction.response.send_message(
                "Reminder not found or you do not have permission to cancel it.",
                ephemeral=True,
            )

    @cancel_reminder.autocomplete("reminder_id")
    async def reminder_id_autocomplete(
        self,
        interaction: discord.Interaction,
        current: str,
    ) -> list[app_commands.Choice[str]]:
        """Offer the caller's active reminders."""
        try:
            reminders = await self.scheduler.list_events(
                interaction.guild_id,
                event_type=EventType.REMINDER,
                creator_id=interaction.user.id,
                limit=MAX_CHOICES,
            )
        except Exception as e:
            logger.warning(f"Reminder autocomplete failed: {e}")
            return []

        current_lower = current.lower()
        choices = []
        for reminder in reminders:
            label = f"{reminder.event_id}: {self.scheduler.format_event(reminder)}"
            if current_lower and current_lower not in label.lower():
                continue
            choices.append(app_commands.Choice(name=label[:100], value=reminder.event_id))
        return choices[:MAX_CHOICES]
