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
Scheduler Configuration

Tunable parameters for the polling loop, id generation and listing.
Values can be overridden via environment variables.
"""

import os
from dataclasses import dataclass


@dataclass
class SchedulerConfig:
    """Configuration for the scheduler service."""

    # Polling loop for one-time events
    poll_interval_seconds: float = 30.0
    poll_batch_size: int = 50

    # Collision retries when generating event ids
    id_generation_attempts: int = 10

    # Default page size for list_events
    list_default_limit: int = 25

    # Used when an event is scheduled without a (valid) timezone
    default_timezone: str = "UTC"

    @classmethod
    def from_env(cls) -> "SchedulerConfig":
        """Create config from environment variables with defaults."""
        return cls(
            poll_interval_seconds=float(os.getenv("SCHEDULER_POLL_INTERVAL", "30")),
            poll_batch_size=int(os.getenv("SCHEDULER_BATCH_SIZE", "50")),
            id_generation_attempts=int(os.getenv("SCHEDULER_ID_ATTEMPTS", "10")),
            list_default_limit=int(os.getenv("SCHEDULER_LIST_LIMIT", "25")),
            default_timezone=os.getenv("SCHEDULER_DEFAULT_TIMEZONE", "UTC"),
        )
