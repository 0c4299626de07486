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
Scheduled Event Models

Data model for persisted scheduled events and their per-type payloads.

Payloads are stored as opaque JSON text and decoded into a typed payload
class (selected by event type) only when an event is executed or displayed.
"""

import json
import secrets
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

EVENT_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
EVENT_ID_LENGTH = 8


class EventType(str, Enum):
    """Event kinds; each one is served by a registered handler."""

    REMINDER = "reminder"
    BIRTHDAY = "birthday"
    HYPE = "hype"
    TIPS = "tips"


class ScheduleType(str, Enum):
    """How an event recurs."""

    ONCE = "once"
    RECURRING = "recurring"
    CRON = "cron"


class EventStatus(str, Enum):
    """Lifecycle states of a scheduled event."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (EventStatus.COMPLETED, EventStatus.CANCELLED, EventStatus.FAILED)


class PayloadDecodeError(ValueError):
    """Raised when a stored payload does not match its event type."""

    pass


# =============================================================================
# Payloads
# =============================================================================


@dataclass
class _Payload:
    """Shared (de)serialization for payload dataclasses."""

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        if not isinstance(data, dict):
            raise PayloadDecodeError(f"{cls.__name__} expects an object, got {type(data).__name__}")
        known = {f.name for f in fields(cls)}
        try:
            return cls(**{k: v for k, v in data.items() if k in known})
        except TypeError as e:
            raise PayloadDecodeError(f"Invalid {cls.__name__}: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ReminderPayload(_Payload):
    message: str
    mention_user: bool = False
    send_dm: bool = False


@dataclass
class BirthdayPayload(_Payload):
    user_id: int
    username: str
    birth_date: str  # MM-DD
    custom_message: Optional[str] = None


@dataclass
class HypePayload(_Payload):
    event_name: str
    description: Optional[str] = None
    show_countdown: bool = False
    announce_at: list[str] = field(default_factory=list)  # "24h", "1h", "15m"


@dataclass
class TipsPayload(_Payload):
    category: Optional[str] = None
    channel_ids: list[int] = field(default_factory=list)


EventPayload = Union[ReminderPayload, BirthdayPayload, HypePayload, TipsPayload]

PAYLOAD_TYPES: dict[EventType, type] = {
    EventType.REMINDER: ReminderPayload,
    EventType.BIRTHDAY: BirthdayPayload,
    EventType.HYPE: HypePayload,
    EventType.TIPS: TipsPayload,
}


def encode_payload(payload: Union[EventPayload, dict[str, Any]]) -> str:
    """Serialize a payload (dataclass or plain dict) to JSON text."""
    if isinstance(payload, _Payload):
        payload = payload.to_dict()
    return json.dumps(payload)


def load_payload(raw: Union[str, dict[str, Any]]) -> dict[str, Any]:
    """Parse stored payload text into a plain dict without type checks."""
    if isinstance(raw, dict):
        return raw
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise PayloadDecodeError(f"Payload is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise PayloadDecodeError("Payload must be a JSON object")
    return data


def decode_payload(event_type: Union[EventType, str], raw: Union[str, dict[str, Any]]) -> EventPayload:
    """
    Decode a stored payload into the payload class for its event type.

    Raises:
        PayloadDecodeError: If the payload is malformed or the type is unknown
    """
    try:
        payload_cls = PAYLOAD_TYPES[EventType(event_type)]
    except ValueError as e:
        raise PayloadDecodeError(f"Unknown event type: {event_type}") from e
    return payload_cls.from_dict(load_payload(raw))


def generate_event_id() -> str:
    """Generate a random 8-character lowercase alphanumeric event id."""
    return "".join(secrets.choice(EVENT_ID_ALPHABET) for _ in range(EVENT_ID_LENGTH))


# =============================================================================
# Scheduled event
# =============================================================================


@dataclass
class ScheduledEvent:
    """A persisted unit of deferred or recurring work."""

    event_id: str
    guild_id: int
    creator_id: int
    event_type: EventType
    payload: str  # JSON text
    schedule_type: ScheduleType
    channel_id: Optional[int] = None  # None = deliver via DM
    execute_at: Optional[datetime] = None
    cron_schedule: Optional[str] = None
    timezone: str = "UTC"
    status: EventStatus = EventStatus.ACTIVE
    last_executed_at: Optional[datetime] = None
    next_execute_at: Optional[datetime] = None
    execution_count: int = 0
    max_executions: Optional[int] = None
    metadata: Optional[dict[str, Any]] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.event_type = EventType(self.event_type)
        self.schedule_type = ScheduleType(self.schedule_type)
        self.status = EventStatus(self.status)

    @property
    def is_recurring(self) -> bool:
        return self.schedule_type != ScheduleType.ONCE

    @property
    def failure_reason(self) -> Optional[str]:
        if not self.metadata:
            return None
        return self.metadata.get("failure_reason")

    def decoded_payload(self) -> EventPayload:
        return decode_payload(self.event_type, self.payload)

    @classmethod
    def from_row(cls, row) -> "ScheduledEvent":
        """Build an event from an asyncpg Record (or any mapping)."""
        data = dict(row)
        metadata = data.get("metadata")
        if isinstance(metadata, str):
            try:
                metadata = json.loads(metadata)
            except ValueError:
                metadata = {"raw": metadata}
        data["metadata"] = metadata
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


# Columns that may appear in store filters and patches
EVENT_COLUMNS = frozenset(
    {
        "id",
        "event_id",
        "guild_id",
        "channel_id",
        "creator_id",
        "event_type",
        "payload",
        "schedule_type",
        "execute_at",
        "cron_schedule",
        "timezone",
        "status",
        "last_executed_at",
        "next_execute_at",
        "execution_count",
        "max_executions",
        "metadata",
        "created_at",
        "updated_at",
    }
)
