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

"""Tests for time expression parsing and CRON helpers."""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
import pytz

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from scheduling.time_parser import (
    _parse_time_components,
    describe_cron,
    format_relative_time,
    format_time,
    get_next_cron_execution,
    is_future_date,
    parse_time_input,
    validate_timezone,
)

# Wednesday
REF = datetime(2025, 1, 15, 10, 0, tzinfo=pytz.UTC)


def utc(*args):
    return datetime(*args, tzinfo=pytz.UTC)


class TestRecurringPhrases:
    """Test the "every ..." phrases that become CRON schedules."""

    def test_every_day(self):
        result = parse_time_input("every day at 9am", REF)
        assert result is not None
        assert result.is_recurring is True
        assert result.cron_expression == "0 9 * * *"
        assert result.display_text == "every day at 9:00 AM"
        assert result.instant == utc(2025, 1, 16, 9, 0)
        assert result.original_input == "every day at 9am"

    def test_every_day_later_today(self):
        result = parse_time_input("every day at 5:30pm", REF)
        assert result.cron_expression == "30 17 * * *"
        assert result.instant == utc(2025, 1, 15, 17, 30)

    def test_every_day_24_hour_clock(self):
        result = parse_time_input("every day at 21:15", REF)
        assert result.cron_expression == "15 21 * * *"
        assert result.display_text == "every day at 9:15 PM"

    def test_every_weekday(self):
        result = parse_time_input("every monday at 10am", REF)
        assert result.cron_expression == "0 10 * * 1"
        assert result.display_text == "every monday at 10:00 AM"
        assert result.instant == utc(2025, 1, 20, 10, 0)

    def test_weekday_is_case_insensitive(self):
        result = parse_time_input("Every Friday at 5:30PM", REF)
        assert result.cron_expression == "30 17 * * 5"
        assert result.instant == utc(2025, 1, 17, 17, 30)
        assert result.original_input == "Every Friday at 5:30PM"

    def test_same_weekday_already_passed_goes_to_next_week(self):
        result = parse_time_input("every wednesday at 9am", REF)
        assert result.instant == utc(2025, 1, 22, 9, 0)

    def test_every_hour(self):
        result = parse_time_input("every hour", utc(2025, 1, 15, 10, 15))
        assert result.cron_expression == "0 * * * *"
        assert result.display_text == "every hour"
        assert result.instant == utc(2025, 1, 15, 11, 0)

    def test_every_n_hours(self):
        result = parse_time_input("every 4 hours", utc(2025, 1, 15, 10, 15))
        assert result.cron_expression == "0 */4 * * *"
        assert result.display_text == "every 4 hours"
        assert result.instant == utc(2025, 1, 15, 14, 0)

    def test_every_one_hour_is_singular(self):
        result = parse_time_input("every 1 hour", REF)
        assert result.display_text == "every 1 hour"

    def test_timezone_applies_to_wall_clock(self):
        # 05:00 in New York
        result = parse_time_input("every day at 9am", REF, timezone="America/New_York")
        assert result.timezone == "America/New_York"
        assert result.instant == utc(2025, 1, 15, 14, 0)

    def test_invalid_timezone_falls_back_to_utc(self):
        result = parse_time_input("every day at 9am", REF, timezone="Mars/Olympus")
        assert result.timezone == "UTC"
        assert result.instant == utc(2025, 1, 16, 9, 0)


class TestOneTimeExpressions:
    """Test natural-language one-time expressions."""

    def test_in_two_hours(self):
        result = parse_time_input("in 2 hours", REF)
        assert result is not None
        assert result.is_recurring is False
        assert result.cron_expression is None
        assert abs(result.instant - utc(2025, 1, 15, 12, 0)) <= timedelta(minutes=1)

    def test_tomorrow_at_3pm(self):
        result = parse_time_input("tomorrow at 3pm", REF)
        assert result.instant == utc(2025, 1, 16, 15, 0)
        assert result.display_text == "tomorrow at 3:00 PM"

    def test_empty_input(self):
        assert parse_time_input("", REF) is None
        assert parse_time_input("   ", REF) is None

    def test_gibberish(self):
        assert parse_time_input("xyzzy", REF) is None


class TestTimeComponents:
    """Test hour/minute normalization."""

    @pytest.mark.parametrize(
        "hour,minute,period,expected",
        [
            ("9", None, "am", (9, 0)),
            ("9", "30", "pm", (21, 30)),
            ("12", None, "am", (0, 0)),
            ("12", None, "pm", (12, 0)),
            ("18", "05", None, (18, 5)),
        ],
    )
    def test_valid(self, hour, minute, period, expected):
        assert _parse_time_components(hour, minute, period) == expected

    @pytest.mark.parametrize(
        "hour,minute,period",
        [("25", None, None), ("9", "60", None), ("13", None, "pm")],
    )
    def test_out_of_range(self, hour, minute, period):
        assert _parse_time_components(hour, minute, period) is None

    def test_format_time(self):
        assert format_time(0, 0) == "12:00 AM"
        assert format_time(9, 5) == "9:05 AM"
        assert format_time(12, 0) == "12:00 PM"
        assert format_time(23, 59) == "11:59 PM"


class TestFormatRelativeTime:
    """Test relative time rendering."""

    def test_past_and_now(self):
        assert format_relative_time(REF - timedelta(minutes=1), REF) == "in the past"
        assert format_relative_time(REF, REF) == "in the past"

    def test_seconds(self):
        assert format_relative_time(REF + timedelta(seconds=30), REF) == "in less than a minute"

    def test_minutes(self):
        assert format_relative_time(REF + timedelta(minutes=1), REF) == "in 1 minute"
        assert format_relative_time(REF + timedelta(minutes=45), REF) == "in 45 minutes"

    def test_hours(self):
        assert format_relative_time(REF + timedelta(hours=1), REF) == "in 1 hour"
        assert format_relative_time(REF + timedelta(hours=2), REF) == "in 2 hours"
        assert (
            format_relative_time(REF + timedelta(hours=2, minutes=30), REF)
            == "in 2 hours and 30 minutes"
        )
        assert (
            format_relative_time(REF + timedelta(hours=1, minutes=1), REF)
            == "in 1 hour and 1 minute"
        )

    def test_tomorrow(self):
        assert format_relative_time(REF + timedelta(days=1), REF) == "tomorrow at 10:00 AM"

    def test_days(self):
        assert format_relative_time(utc(2025, 1, 18, 18, 30), REF) == "in 3 days at 6:30 PM"

    def test_far_future(self):
        assert (
            format_relative_time(utc(2025, 1, 25, 10, 0), REF)
            == "on January 25, 2025 at 10:00 AM"
        )

    def test_timezone_changes_wall_clock(self):
        result = format_relative_time(utc(2025, 1, 25, 10, 0), REF, timezone="America/New_York")
        assert result == "on January 25, 2025 at 5:00 AM"


class TestIsFutureDate:
    def test_strictly_after(self):
        assert is_future_date(REF + timedelta(seconds=1), REF) is True
        assert is_future_date(REF, REF) is False
        assert is_future_date(REF - timedelta(seconds=1), REF) is False

    def test_naive_treated_as_utc(self):
        assert is_future_date(datetime(2025, 1, 15, 11, 0), REF) is True


class TestNextCronExecution:
    """Test the supported CRON shapes."""

    def test_daily_before_time(self):
        assert get_next_cron_execution("0 9 * * *", utc(2025, 1, 15, 8, 0)) == utc(2025, 1, 15, 9, 0)

    def test_daily_after_time(self):
        assert get_next_cron_execution("0 9 * * *", REF) == utc(2025, 1, 16, 9, 0)

    def test_daily_exactly_at_time_moves_to_next_day(self):
        assert get_next_cron_execution("0 9 * * *", utc(2025, 1, 15, 9, 0)) == utc(2025, 1, 16, 9, 0)

    def test_weekly(self):
        assert get_next_cron_execution("0 10 * * 1", REF) == utc(2025, 1, 20, 10, 0)

    def test_weekly_same_day(self):
        assert get_next_cron_execution("0 11 * * 3", REF) == utc(2025, 1, 15, 11, 0)
        assert get_next_cron_execution("0 10 * * 3", REF) == utc(2025, 1, 22, 10, 0)

    def test_weekly_seven_is_sunday(self):
        assert get_next_cron_execution("0 10 * * 7", REF) == utc(2025, 1, 19, 10, 0)
        assert get_next_cron_execution("0 10 * * 0", REF) == utc(2025, 1, 19, 10, 0)

    def test_interval(self):
        assert get_next_cron_execution("0 */2 * * *", utc(2025, 1, 15, 10, 15)) == utc(2025, 1, 15, 12, 0)

    def test_interval_rolls_over_midnight(self):
        assert get_next_cron_execution("0 */2 * * *", utc(2025, 1, 15, 23, 30)) == utc(2025, 1, 16, 0, 0)
        assert get_next_cron_execution("0 */5 * * *", utc(2025, 1, 15, 21, 0)) == utc(2025, 1, 16, 0, 0)

    def test_hourly(self):
        assert get_next_cron_execution("0 * * * *", utc(2025, 1, 15, 10, 15)) == utc(2025, 1, 15, 11, 0)

    def test_timezone(self):
        # 02:00 in Los Angeles
        result = get_next_cron_execution("0 9 * * *", REF, timezone="America/Los_Angeles")
        assert result == utc(2025, 1, 15, 17, 0)

    @pytest.mark.parametrize(
        "expression",
        [
            "invalid",
            "0 9 *",
            "",
            "0 9 1 * *",
            "0 9 * 6 *",
            "*/5 * * * *",
            "60 9 * * *",
            "0 25 * * *",
            "0 9 * * 8",
            "0 */24 * * *",
            "0 9 * * 1-5",
        ],
    )
    def test_unsupported_shapes(self, expression):
        assert get_next_cron_execution(expression, REF) is None


class TestDescribeCron:
    def test_one_time(self):
        assert describe_cron(None) == "one-time"

    def test_daily(self):
        assert describe_cron("0 9 * * *") == "every day at 9:00 AM"

    def test_weekly(self):
        assert describe_cron("30 17 * * 5") == "every friday at 5:30 PM"

    def test_intervals(self):
        assert describe_cron("0 * * * *") == "every hour"
        assert describe_cron("0 */4 * * *") == "every 4 hours"

    def test_fallback(self):
        assert describe_cron("*/5 * * * *") == "recurring (*/5 * * * *)"


class TestValidateTimezone:
    def test_valid(self):
        assert validate_timezone("America/Los_Angeles") is True
        assert validate_timezone("UTC") is True

    def test_invalid(self):
        assert validate_timezone("Not/AZone") is False
