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

"""Tests for the /remind slash commands."""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytz

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from commands.remind_commands import RemindCommands
from scheduling import EventValidationError, ParsedTime, ReminderPayload, SchedulerError


@pytest.fixture(autouse=True)
def no_analytics():
    with patch("commands.remind_commands.track"):
        yield


@pytest.fixture
def interaction():
    mock_interaction = MagicMock()
    mock_interaction.guild_id = 1
    mock_interaction.channel_id = 2
    mock_interaction.user.id = 3
    mock_interaction.response.send_message = AsyncMock()
    return mock_interaction


@pytest.fixture
def scheduler():
    mock_scheduler = MagicMock()
    mock_scheduler.schedule_event = AsyncMock()
    mock_scheduler.cancel_event = AsyncMock(return_value=True)
    mock_scheduler.list_events = AsyncMock(return_value=[])
    return mock_scheduler


@pytest.fixture
def cog(scheduler):
    return RemindCommands(MagicMock(), scheduler)


def parsed(instant, is_recurring=False):
    return ParsedTime(
        instant=instant,
        is_recurring=is_recurring,
        display_text="in 1 hour",
        cron_expression="0 9 * * *" if is_recurring else None,
    )


def sent_text(interaction) -> str:
    call = interaction.response.send_message.call_args
    return call.args[0] if call.args else ""


class TestScheduleReminder:
    """Test the shared parse-and-schedule path."""

    @pytest.mark.asyncio
    async def test_unparseable(self, cog, scheduler, interaction):
        with patch("commands.remind_commands.parse_time_input", return_value=None):
            result = await cog._schedule_reminder(
                interaction, "whenever", ReminderPayload(message="x"), 2, "UTC"
            )

        assert result is None
        assert 'Could not understand "whenever"' in sent_text(interaction)
        scheduler.schedule_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejects_recurring(self, cog, scheduler, interaction):
        future = datetime.now(pytz.UTC) + timedelta(hours=1)
        with patch("commands.remind_commands.parse_time_input", return_value=parsed(future, True)):
            result = await cog._schedule_reminder(
                interaction, "every day at 9am", ReminderPayload(message="x"), 2, "UTC"
            )

        assert result is None
        assert "one-time only" in sent_text(interaction)
        scheduler.schedule_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejects_past(self, cog, scheduler, interaction):
        past = datetime.now(pytz.UTC) - timedelta(hours=1)
        with patch("commands.remind_commands.parse_time_input", return_value=parsed(past)):
            result = await cog._schedule_reminder(
                interaction, "an hour ago", ReminderPayload(message="x"), 2, "UTC"
            )

        assert result is None
        assert sent_text(interaction) == "Reminder time must be in the future."
        scheduler.schedule_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_schedules_once(self, cog, scheduler, interaction):
        future = datetime.now(pytz.UTC) + timedelta(hours=1)
        event = MagicMock(event_id="abc12345")
        scheduler.schedule_event.return_value = event
        payload = ReminderPayload(message="Stretch", mention_user=True)

        with patch("commands.remind_commands.parse_time_input", return_value=parsed(future)):
            result = await cog._schedule_reminder(interaction, "in 1 hour", payload, 2, "UTC")

        assert result[0] is event
        kwargs = scheduler.schedule_event.call_args.kwargs
        assert kwargs["guild_id"] == 1
        assert kwargs["channel_id"] == 2
        assert kwargs["creator_id"] == 3
        assert kwargs["payload"] is payload
        assert kwargs["execute_at"] == future
        interaction.response.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_validation_error_shown(self, cog, scheduler, interaction):
        future = datetime.now(pytz.UTC) + timedelta(hours=1)
        scheduler.schedule_event.side_effect = EventValidationError("Reminder message cannot be empty")

        with patch("commands.remind_commands.parse_time_input", return_value=parsed(future)):
            result = await cog._schedule_reminder(
                interaction, "in 1 hour", ReminderPayload(message=" "), 2, "UTC"
            )

        assert result is None
        assert sent_text(interaction) == "Reminder message cannot be empty"

    @pytest.mark.asyncio
    async def test_scheduler_error_is_generic(self, cog, scheduler, interaction):
        future = datetime.now(pytz.UTC) + timedelta(hours=1)
        scheduler.schedule_event.side_effect = SchedulerError("ids exhausted")

        with patch("commands.remind_commands.parse_time_input", return_value=parsed(future)):
            result = await cog._schedule_reminder(
                interaction, "in 1 hour", ReminderPayload(message="x"), 2, "UTC"
            )

        assert result is None
        assert "try again later" in sent_text(interaction)


class TestCancelCommand:
    @pytest.mark.asyncio
    async def test_cancel_normalizes_id(self, cog, scheduler, interaction):
        await cog.cancel_reminder.callback(cog, interaction, "  ABC12345 ")

        scheduler.cancel_event.assert_awaited_once_with("abc12345", 3)
        assert "has been cancelled" in sent_text(interaction)

    @pytest.mark.asyncio
    async def test_cancel_not_found(self, cog, scheduler, interaction):
        scheduler.cancel_event.return_value = False

        await cog.cancel_reminder.callback(cog, interaction, "zzzzzzzz")

        assert "not found" in sent_text(interaction)


class TestListCommand:
    @pytest.mark.asyncio
    async def test_empty(self, cog, scheduler, interaction):
        await cog.list_reminders.callback(cog, interaction)

        scheduler.list_events.assert_awaited_once()
        assert sent_text(interaction) == "You have no active reminders."


class TestTimezoneAutocomplete:
    @pytest.mark.asyncio
    async def test_common_matches(self, cog, interaction):
        choices = await cog.timezone_autocomplete(interaction, "new_york")
        assert [c.value for c in choices] == ["America/New_York"]

    @pytest.mark.asyncio
    async def test_falls_back_to_all_zones(self, cog, interaction):
        choices = await cog.timezone_autocomplete(interaction, "Lisbon")
        assert "Europe/Lisbon" in [c.value for c in choices]
