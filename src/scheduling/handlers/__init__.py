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
Event Handlers

Default handler table for the scheduler. Birthday, hype and tips events
have payload types but no handler yet; scheduling them is allowed and they
fail with "No handler registered" when due.
"""

from typing import TYPE_CHECKING

from .base import EventContext, EventHandler, EventResult, ValidationResult
from .reminder import ReminderHandler

if TYPE_CHECKING:
    from ..service import SchedulerService

DEFAULT_HANDLERS: list[EventHandler] = [
    ReminderHandler(),
]


def register_default_handlers(scheduler: "SchedulerService") -> None:
    """Register every default handler with a scheduler instance."""
    for handler in DEFAULT_HANDLERS:
        scheduler.register_handler(handler)


__all__ = [
    "EventContext",
    "EventHandler",
    "EventResult",
    "ValidationResult",
    "ReminderHandler",
    "DEFAULT_HANDLERS",
    "register_default_handlers",
]
