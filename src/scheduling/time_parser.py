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
Time Parser Module

Parses human time expressions for scheduled events. Recurring phrases
("every day at 9am", "every monday at 10am", "every hour", "every 4 hours")
become CRON schedules; everything else is handed to dateparser for a
one-time instant ("in 2 hours", "tomorrow at 3pm", "next friday at noon").

Only a practical subset of CRON is evaluated here (daily, weekly and
hour-interval shapes). Live timers use croniter directly.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import dateparser
import pytz

logger = logging.getLogger("herald.scheduling.time_parser")

WEEKDAYS = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}

_TIME_OF_DAY = r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)?"

DAILY_PATTERN = re.compile(rf"^every\s+day\s+at\s+{_TIME_OF_DAY}$", re.IGNORECASE)
WEEKLY_PATTERN = re.compile(
    rf"^every\s+({'|'.join(WEEKDAYS)})\s+at\s+{_TIME_OF_DAY}$", re.IGNORECASE
)
HOURLY_PATTERN = re.compile(r"^every\s+hour$", re.IGNORECASE)
INTERVAL_PATTERN = re.compile(r"^every\s+(\d+)\s+hours?$", re.IGNORECASE)

_NUMBER = re.compile(r"^\d+$")


@dataclass
class ParsedTime:
    """Result of parsing a time expression."""

    instant: datetime  # UTC, next (or only) execution
    is_recurring: bool
    display_text: str
    cron_expression: Optional[str] = None  # None for one-time
    original_input: str = ""
    timezone: str = "UTC"


def validate_timezone(tz_name: str) -> bool:
    """
    Validate that a timezone name is valid.

    Args:
        tz_name: IANA timezone name (e.g., "America/Los_Angeles")

    Returns:
        True if valid, False otherwise
    """
    try:
        pytz.timezone(tz_name)
        return True
    except pytz.UnknownTimeZoneError:
        return False


def _get_timezone(tz_name: Optional[str]) -> pytz.BaseTzInfo:
    if tz_name and validate_timezone(tz_name):
        return pytz.timezone(tz_name)
    if tz_name:
        logger.warning(f"Invalid timezone '{tz_name}', falling back to UTC")
    return pytz.UTC


def _as_utc(dt: Optional[datetime]) -> datetime:
    """Treat naive datetimes as UTC; default to now."""
    if dt is None:
        return datetime.now(pytz.UTC)
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def _at_local(tz: pytz.BaseTzInfo, day: datetime, hour: int, minute: int) -> datetime:
    """Build an aware local datetime for a calendar day at hour:minute."""
    naive = datetime(day.year, day.month, day.day, hour, minute)
    return tz.localize(naive)


def format_time(hour: int, minute: int) -> str:
    """Format a wall-clock time as H:MM AM/PM."""
    period = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {period}"


def _parse_time_components(
    hour_str: str, minute_str: Optional[str], period: Optional[str]
) -> Optional[tuple[int, int]]:
    """
    Normalize an H[:MM][am|pm] match to 24-hour (hour, minute).

    Returns None for out-of-range values so the pattern is rejected.
    """
    hour = int(hour_str)
    minute = int(minute_str) if minute_str else 0

    if hour < 0 or hour > 23 or minute > 59:
        return None

    if period:
        if hour > 12:
            return None
        is_pm = period.lower() == "pm"
        if is_pm and hour != 12:
            hour += 12
        elif not is_pm and hour == 12:
            hour = 0

    return hour, minute


# =============================================================================
# Next-occurrence helpers
# =============================================================================


def _next_daily(hour: int, minute: int, reference: datetime, tz: pytz.BaseTzInfo) -> datetime:
    local_ref = reference.astimezone(tz)
    candidate = _at_local(tz, local_ref, hour, minute)
    if candidate <= local_ref:
        candidate = _at_local(tz, local_ref + timedelta(days=1), hour, minute)
    return candidate.astimezone(pytz.UTC)


def _next_weekly(
    day_of_week: int, hour: int, minute: int, reference: datetime, tz: pytz.BaseTzInfo
) -> datetime:
    local_ref = reference.astimezone(tz)
    # datetime.weekday() is Monday=0; CRON is Sunday=0
    current = (local_ref.weekday() + 1) % 7
    days_until = (day_of_week - current) % 7
    candidate = _at_local(tz, local_ref + timedelta(days=days_until), hour, minute)
    if candidate <= local_ref:
        candidate = _at_local(tz, local_ref + timedelta(days=days_until + 7), hour, minute)
    return candidate.astimezone(pytz.UTC)


def _next_interval(interval: int, reference: datetime, tz: pytz.BaseTzInfo) -> datetime:
    local_ref = reference.astimezone(tz)
    next_hour = (local_ref.hour // interval + 1) * interval
    if next_hour >= 24:
        candidate = _at_local(tz, local_ref + timedelta(days=1), 0, 0)
    else:
        candidate = _at_local(tz, local_ref, next_hour, 0)
    return candidate.astimezone(pytz.UTC)


def _top_of_hour_after(reference: datetime, hours: int, tz: pytz.BaseTzInfo) -> datetime:
    local_ref = reference.astimezone(tz)
    shifted = tz.normalize(local_ref + timedelta(hours=hours))
    return shifted.replace(minute=0, second=0, microsecond=0).astimezone(pytz.UTC)


# =============================================================================
# Public API
# =============================================================================


def _parse_recurring_pattern(
    text: str, reference: datetime, tz: pytz.BaseTzInfo, tz_name: str
) -> Optional[ParsedTime]:
    """Match the supported "every ..." phrases."""
    match = DAILY_PATTERN.match(text)
    if match:
        components = _parse_time_components(*match.groups())
        if components is not None:
            hour, minute = components
            return ParsedTime(
                instant=_next_daily(hour, minute, reference, tz),
                is_recurring=True,
                cron_expression=f"{minute} {hour} * * *",
                display_text=f"every day at {format_time(hour, minute)}",
                original_input=text,
                timezone=tz_name,
            )

    match = WEEKLY_PATTERN.match(text)
    if match:
        day_name = match.group(1).lower()
        components = _parse_time_components(*match.groups()[1:])
        if components is not None:
            hour, minute = components
            day_of_week = WEEKDAYS[day_name]
            return ParsedTime(
                instant=_next_weekly(day_of_week, hour, minute, reference, tz),
                is_recurring=True,
                cron_expression=f"{minute} {hour} * * {day_of_week}",
                display_text=f"every {day_name} at {format_time(hour, minute)}",
                original_input=text,
                timezone=tz_name,
            )

    if HOURLY_PATTERN.match(text):
        return ParsedTime(
            instant=_top_of_hour_after(reference, 1, tz),
            is_recurring=True,
            cron_expression="0 * * * *",
            display_text="every hour",
            original_input=text,
            timezone=tz_name,
        )

    match = INTERVAL_PATTERN.match(text)
    if match:
        hours = int(match.group(1))
        if 1 <= hours <= 23:
            return ParsedTime(
                instant=_top_of_hour_after(reference, hours, tz),
                is_recurring=True,
                cron_expression=f"0 */{hours} * * *",
                display_text=f"every {hours} hour{'s' if hours > 1 else ''}",
                original_input=text,
                timezone=tz_name,
            )

    return None


def parse_time_input(
    text: str,
    reference_time: Optional[datetime] = None,
    timezone: str = "UTC",
) -> Optional[ParsedTime]:
    """
    Parse a time expression into a structured result.

    Supports:
    - Recurring: "every day at 9am", "every monday at 10:30pm",
      "every hour", "every 4 hours"
    - One-time natural language: "in 2 hours", "tomorrow at 3pm",
      "next friday at noon", "december 25 at 9am"

    Args:
        text: The time expression to parse
        reference_time: "Now" for relative expressions (defaults to current UTC time)
        timezone: IANA timezone wall-clock times are interpreted in

    Returns:
        ParsedTime, or None if nothing could be understood. One-time results
        may lie in the past; check with is_future_date().
    """
    if not text or not text.strip():
        return None

    text = text.strip()
    reference = _as_utc(reference_time)
    tz = _get_timezone(timezone)
    tz_name = tz.zone

    recurring = _parse_recurring_pattern(text, reference, tz, tz_name)
    if recurring is not None:
        return recurring

    settings = {
        "TIMEZONE": tz_name,
        "RETURN_AS_TIMEZONE_AWARE": True,
        "PREFER_DATES_FROM": "future",
        "RELATIVE_BASE": reference.astimezone(tz).replace(tzinfo=None),
    }
    parsed = dateparser.parse(text, languages=["en"], settings=settings)
    if parsed is None:
        logger.debug(f"Could not parse time expression: '{text}'")
        return None

    if parsed.tzinfo is None:
        parsed = tz.localize(parsed)
    instant = parsed.astimezone(pytz.UTC)

    return ParsedTime(
        instant=instant,
        is_recurring=False,
        display_text=format_relative_time(instant, reference, tz_name),
        original_input=text,
        timezone=tz_name,
    )


def format_relative_time(
    date: datetime,
    reference: Optional[datetime] = None,
    timezone: str = "UTC",
) -> str:
    """
    Render a datetime relative to a reference time.

    Examples: "in 5 minutes", "in 2 hours and 30 minutes",
    "tomorrow at 9:00 AM", "in 3 days at 6:30 PM", "on March 4, 2026 at 9:00 AM".
    """
    date = _as_utc(date)
    reference = _as_utc(reference)

    diff = (date - reference).total_seconds()
    if diff <= 0:
        return "in the past"

    seconds = int(diff)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if seconds < 60:
        return "in less than a minute"

    if minutes < 60:
        return f"in {minutes} minute{'s' if minutes != 1 else ''}"

    if hours < 24:
        hour_text = f"{hours} hour{'s' if hours != 1 else ''}"
        remaining = minutes % 60
        if remaining == 0:
            return f"in {hour_text}"
        return f"in {hour_text} and {remaining} minute{'s' if remaining != 1 else ''}"

    local = date.astimezone(_get_timezone(timezone))
    time_text = format_time(local.hour, local.minute)

    if days == 1:
        return f"tomorrow at {time_text}"

    if days < 7:
        return f"in {days} days at {time_text}"

    return f"on {local:%B} {local.day}, {local.year} at {time_text}"


def is_future_date(date: datetime, reference: Optional[datetime] = None) -> bool:
    """Check that a datetime is strictly after the reference time."""
    return _as_utc(date) > _as_utc(reference)


def get_next_cron_execution(
    cron_expression: str,
    reference: Optional[datetime] = None,
    timezone: str = "UTC",
) -> Optional[datetime]:
    """
    Calculate the next execution time for a CRON expression.

    Only three shapes are understood (day-of-month and month must be "*"):
    - "M H * * *"   daily at H:M
    - "M H * * D"   weekly on day D (0=Sunday) at H:M
    - "0 */N * * *" every N hours on the hour ("0 * * * *" counts as N=1)

    Args:
        cron_expression: 5-field CRON string
        reference: Time to search from (defaults to now)
        timezone: IANA timezone the schedule's wall-clock fields refer to

    Returns:
        Next execution time in UTC, or None for any other shape
    """
    if not cron_expression:
        return None

    parts = cron_expression.split()
    if len(parts) != 5:
        return None

    minute_part, hour_part, dom_part, month_part, dow_part = parts
    if dom_part != "*" or month_part != "*":
        return None

    reference = _as_utc(reference)
    tz = _get_timezone(timezone)

    if _NUMBER.match(minute_part) and _NUMBER.match(hour_part):
        minute = int(minute_part)
        hour = int(hour_part)
        if minute > 59 or hour > 23:
            return None

        if dow_part == "*":
            return _next_daily(hour, minute, reference, tz)

        if _NUMBER.match(dow_part):
            day_of_week = int(dow_part)
            if day_of_week > 7:
                return None
            return _next_weekly(day_of_week % 7, hour, minute, reference, tz)

        return None

    if minute_part == "0" and dow_part == "*":
        if hour_part == "*":
            return _next_interval(1, reference, tz)
        if hour_part.startswith("*/") and _NUMBER.match(hour_part[2:]):
            interval = int(hour_part[2:])
            if 1 <= interval <= 23:
                return _next_interval(interval, reference, tz)

    return None


def describe_cron(cron_expression: Optional[str]) -> str:
    """
    Convert a CRON expression to a human-readable recurrence description.

    Args:
        cron_expression: CRON expression or None for one-time

    Returns:
        Human-readable description
    """
    if not cron_expression:
        return "one-time"

    parts = cron_expression.split()
    if len(parts) == 5:
        minute, hour, dom, month, dow = parts
        if dom == "*" and month == "*":
            if _NUMBER.match(minute) and _NUMBER.match(hour):
                time_text = format_time(int(hour) % 24, int(minute) % 60)
                if dow == "*":
                    return f"every day at {time_text}"
                if _NUMBER.match(dow) and int(dow) <= 7:
                    day_name = [name for name, num in WEEKDAYS.items() if num == int(dow) % 7][0]
                    return f"every {day_name} at {time_text}"
            if minute == "0" and dow == "*":
                if hour == "*":
                    return "every hour"
                if hour.startswith("*/") and _NUMBER.match(hour[2:]):
                    hours = int(hour[2:])
                    return f"every {hours} hour{'s' if hours != 1 else ''}"

    return f"recurring ({cron_expression})"
