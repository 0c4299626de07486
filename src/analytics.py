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
Lightweight analytics tracking for Herald.

Usage:
    from analytics import track, track_async

    # Synchronous (fire-and-forget, uses background task)
    track("scheduled_event_executed", "scheduler", guild_id=123, properties={"event_type": "reminder"})

    # Async (when you need to await completion)
    await track_async("command_used", "command", user_id=123, properties={"command": "remind me"})

The bot shares its own pool via configure(); otherwise a small pool is
created lazily from DATABASE_URL.
"""

import asyncio
import json
import logging
import os
from typing import Any, Optional

import asyncpg

logger = logging.getLogger("herald.analytics")

CATEGORIES = ("scheduler", "command", "error", "system")

_pool: Optional[asyncpg.Pool] = None
_owns_pool: bool = False
_enabled: bool = os.getenv("ANALYTICS_ENABLED", "true").lower() == "true"
_pending: set[asyncio.Task] = set()


def configure(pool: Optional[asyncpg.Pool] = None, enabled: Optional[bool] = None) -> None:
    """Use an existing pool and/or override the ANALYTICS_ENABLED setting."""
    global _pool, _owns_pool, _enabled
    if pool is not None:
        _pool = pool
        _owns_pool = False
    if enabled is not None:
        _enabled = enabled


async def _get_pool() -> Optional[asyncpg.Pool]:
    """Get or create the connection pool."""
    global _pool, _owns_pool
    if _pool is None and _enabled:
        database_url = os.getenv("DATABASE_URL")
        if database_url:
            try:
                _pool = await asyncpg.create_pool(database_url, min_size=1, max_size=2)
                _owns_pool = True
            except Exception as e:
                logger.warning(f"Analytics pool creation failed: {e}")
                return None
    return _pool


async def track_async(
    event_name: str,
    event_category: str,
    user_id: Optional[int] = None,
    channel_id: Optional[int] = None,
    guild_id: Optional[int] = None,
    properties: Optional[dict[str, Any]] = None,
) -> bool:
    """
    Record one analytics row and wait for the insert.

    Returns False when analytics is off, no pool is available, the
    category is unknown or the insert fails; tracking never raises.
    """
    if not _enabled:
        return False

    if event_category not in CATEGORIES:
        logger.debug(f"Dropping analytics event {event_name}: unknown category {event_category}")
        return False

    pool = await _get_pool()
    if pool is None:
        return False

    try:
        await pool.execute(
            """
            INSERT INTO analytics_events
                (event_name, event_category, user_id, channel_id, guild_id, properties)
            VALUES ($1, $2, $3, $4, $5, $6)
            """,
            event_name,
            event_category,
            user_id,
            channel_id,
            guild_id,
            json.dumps(properties or {}, default=str),
        )
        return True
    except Exception as e:
        logger.debug(f"Analytics tracking failed: {e}")
        return False


def track(
    event_name: str,
    event_category: str,
    user_id: Optional[int] = None,
    channel_id: Optional[int] = None,
    guild_id: Optional[int] = None,
    properties: Optional[dict[str, Any]] = None,
) -> None:
    """
    Track an event (fire-and-forget).

    Safe to call from sync or async contexts; without a running loop the
    event is dropped.
    """
    if not _enabled:
        return

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return

    task = loop.create_task(
        track_async(event_name, event_category, user_id, channel_id, guild_id, properties)
    )
    _pending.add(task)
    task.add_done_callback(_pending.discard)


async def shutdown() -> None:
    """Close the pool if analytics created it. Call on bot shutdown."""
    global _pool, _owns_pool
    if _pool is not None and _owns_pool:
        await _pool.close()
    _pool = None
    _owns_pool = False
