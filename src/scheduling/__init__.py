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
Scheduled Events Package

Persistence-backed scheduling of deferred and recurring actions
(reminders today; payload types also exist for birthday, hype and
tips announcements).
"""

from .config import SchedulerConfig
from .handlers import (
    DEFAULT_HANDLERS,
    EventContext,
    EventHandler,
    EventResult,
    ReminderHandler,
    ValidationResult,
    register_default_handlers,
)
from .models import (
    BirthdayPayload,
    EventStatus,
    EventType,
    HypePayload,
    PayloadDecodeError,
    ReminderPayload,
    ScheduledEvent,
    ScheduleType,
    TipsPayload,
    decode_payload,
    encode_payload,
    generate_event_id,
)
from .service import (
    EventValidationError,
    IdGenerationExhausted,
    SchedulerError,
    SchedulerService,
)
from .store import EventStore
from .time_parser import (
    ParsedTime,
    describe_cron,
    format_relative_time,
    get_next_cron_execution,
    is_future_date,
    parse_time_input,
    validate_timezone,
)

__all__ = [
    "SchedulerConfig",
    "DEFAULT_HANDLERS",
    "EventContext",
    "EventHandler",
    "EventResult",
    "ReminderHandler",
    "ValidationResult",
    "register_default_handlers",
    "BirthdayPayload",
    "EventStatus",
    "EventType",
    "HypePayload",
    "PayloadDecodeError",
    "ReminderPayload",
    "ScheduledEvent",
    "ScheduleType",
    "TipsPayload",
    "decode_payload",
    "encode_payload",
    "generate_event_id",
    "EventValidationError",
    "IdGenerationExhausted",
    "SchedulerError",
    "SchedulerService",
    "EventStore",
    "ParsedTime",
    "describe_cron",
    "format_relative_time",
    "get_next_cron_execution",
    "is_future_date",
    "parse_time_input",
    "validate_timezone",
]
