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

"""Tests for scheduled event models and payload decoding."""

import json
import sys
from datetime import datetime
from pathlib import Path

import pytest
import pytz

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from scheduling.models import (
    EVENT_ID_ALPHABET,
    EVENT_ID_LENGTH,
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


class TestEventIds:
    def test_length_and_alphabet(self):
        for _ in range(100):
            event_id = generate_event_id()
            assert len(event_id) == EVENT_ID_LENGTH
            assert set(event_id) <= set(EVENT_ID_ALPHABET)

    def test_ids_vary(self):
        assert len({generate_event_id() for _ in range(50)}) > 1


class TestEventStatus:
    def test_terminal_states(self):
        assert EventStatus.COMPLETED.is_terminal
        assert EventStatus.CANCELLED.is_terminal
        assert EventStatus.FAILED.is_terminal
        assert not EventStatus.ACTIVE.is_terminal
        assert not EventStatus.PENDING.is_terminal

    def test_values_match_storage(self):
        assert EventStatus("active") is EventStatus.ACTIVE
        assert ScheduleType("cron") is ScheduleType.CRON
        assert EventType("reminder") is EventType.REMINDER


class TestPayloads:
    """Test the tagged payload union."""

    def test_decode_reminder(self):
        payload = decode_payload("reminder", '{"message": "Stand up", "mention_user": true}')
        assert isinstance(payload, ReminderPayload)
        assert payload.message == "Stand up"
        assert payload.mention_user is True
        assert payload.send_dm is False

    def test_decode_each_type(self):
        assert isinstance(
            decode_payload(
                EventType.BIRTHDAY,
                {"user_id": 1, "username": "sam", "birth_date": "04-12"},
            ),
            BirthdayPayload,
        )
        assert isinstance(decode_payload(EventType.HYPE, {"event_name": "Launch"}), HypePayload)
        assert isinstance(decode_payload(EventType.TIPS, {}), TipsPayload)

    def test_unknown_fields_ignored(self):
        payload = decode_payload("reminder", {"message": "hi", "extra": 1})
        assert payload == ReminderPayload(message="hi")

    def test_invalid_json(self):
        with pytest.raises(PayloadDecodeError):
            decode_payload("reminder", "{not json")

    def test_non_object_json(self):
        with pytest.raises(PayloadDecodeError):
            decode_payload("reminder", "[1, 2]")

    def test_missing_required_field(self):
        with pytest.raises(PayloadDecodeError):
            decode_payload("reminder", '{"mention_user": true}')

    def test_unknown_event_type(self):
        with pytest.raises(PayloadDecodeError):
            decode_payload("anniversary", "{}")

    def test_encode_dataclass_and_dict(self):
        encoded = encode_payload(ReminderPayload(message="hi", send_dm=True))
        assert json.loads(encoded) == {"message": "hi", "mention_user": False, "send_dm": True}
        assert json.loads(encode_payload({"message": "hi"})) == {"message": "hi"}

    def test_decode_error_is_value_error(self):
        assert issubclass(PayloadDecodeError, ValueError)


class TestScheduledEvent:
    def _row(self, **overrides):
        row = {
            "id": 7,
            "event_id": "abc12345",
            "guild_id": 1,
            "channel_id": 2,
            "creator_id": 3,
            "event_type": "reminder",
            "payload": '{"message": "hello"}',
            "schedule_type": "cron",
            "execute_at": None,
            "cron_schedule": "0 9 * * *",
            "timezone": "UTC",
            "status": "active",
            "last_executed_at": None,
            "next_execute_at": datetime(2025, 1, 16, 9, tzinfo=pytz.UTC),
            "execution_count": 2,
            "max_executions": None,
            "metadata": '{"failure_reason": "boom"}',
            "created_at": datetime(2025, 1, 1, tzinfo=pytz.UTC),
            "updated_at": datetime(2025, 1, 1, tzinfo=pytz.UTC),
        }
        row.update(overrides)
        return row

    def test_from_row(self):
        event = ScheduledEvent.from_row(self._row())
        assert event.id == 7
        assert event.event_type is EventType.REMINDER
        assert event.schedule_type is ScheduleType.CRON
        assert event.status is EventStatus.ACTIVE
        assert event.metadata == {"failure_reason": "boom"}
        assert event.failure_reason == "boom"
        assert event.is_recurring is True

    def test_from_row_ignores_unknown_columns(self):
        event = ScheduledEvent.from_row(self._row(extra_column="x", metadata=None))
        assert event.metadata is None
        assert event.failure_reason is None

    def test_from_row_keeps_unparseable_metadata(self):
        event = ScheduledEvent.from_row(self._row(metadata="not json"))
        assert event.metadata == {"raw": "not json"}

    def test_decoded_payload(self):
        event = ScheduledEvent.from_row(self._row())
        assert event.decoded_payload() == ReminderPayload(message="hello")

    def test_once_is_not_recurring(self):
        event = ScheduledEvent(
            event_id="abc12345",
            guild_id=1,
            creator_id=3,
            event_type="reminder",
            payload="{}",
            schedule_type="once",
        )
        assert event.is_recurring is False
        assert event.status is EventStatus.ACTIVE
        assert event.timezone == "UTC"
