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
Event Handler Contract

Each event type is served by one EventHandler. The scheduler only talks to
this interface; adding an event kind means writing a handler and
registering it, nothing else.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

import discord

from ..models import EventPayload, EventType, ScheduledEvent

if TYPE_CHECKING:
    from ..service import SchedulerService


@dataclass
class EventContext:
    """Everything a handler needs to execute one event."""

    event: ScheduledEvent
    target: Optional[discord.abc.Messageable]  # None if delivery target is unavailable
    payload: EventPayload
    scheduler: Optional["SchedulerService"] = None


@dataclass
class EventResult:
    """Outcome of a handler execution."""

    success: bool
    message: Optional[str] = None
    should_reschedule: bool = False
    error: Optional[BaseException] = None


@dataclass
class ValidationResult:
    """Outcome of validating a payload before it is scheduled."""

    valid: bool
    error: Optional[str] = None


class EventHandler(ABC):
    """Business logic for one event type."""

    event_type: EventType

    @abstractmethod
    async def execute(self, ctx: EventContext) -> EventResult:
        """Perform the event's action (send a reminder, announce a birthday, ...)."""

    def validate(self, payload: dict[str, Any]) -> ValidationResult:
        """Check a payload before scheduling. Accepts everything by default."""
        return ValidationResult(valid=True)

    def format_display(self, event: ScheduledEvent) -> str:
        """Short description of an event for listings."""
        return f"{event.event_type.value} event"
