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
Scheduled Event Store

asyncpg-backed persistence for scheduled events. Exposes the small
create / find_one / find_all / update contract the scheduler relies on.

Filters are keyword-style:
    status="active"                      -> status = $1
    schedule_type=["recurring", "cron"]  -> schedule_type = ANY($2)
    execute_at__lte=now                  -> execute_at <= $3
    channel_id=None                      -> channel_id IS NULL
"""

import json
import logging
from enum import Enum
from typing import Any, Optional

import asyncpg

from .models import EVENT_COLUMNS, ScheduledEvent

logger = logging.getLogger("herald.scheduling.store")

_LOOKUPS = {
    "lte": "<=",
    "lt": "<",
    "gte": ">=",
    "gt": ">",
    "ne": "<>",
}

_INSERT_COLUMNS = (
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
)


def _to_db(column: str, value: Any) -> Any:
    """Convert Python values to what asyncpg expects for a column."""
    if isinstance(value, Enum):
        return value.value
    if column == "metadata" and isinstance(value, dict):
        return json.dumps(value)
    if isinstance(value, (list, tuple)):
        return [_to_db(column, v) for v in value]
    return value


def _check_column(column: str) -> str:
    if column not in EVENT_COLUMNS:
        raise ValueError(f"Unknown scheduled event column: {column}")
    return column


def build_where(filters: dict[str, Any], start_index: int = 1) -> tuple[str, list[Any]]:
    """
    Build a WHERE clause body and parameter list from keyword filters.

    Args:
        filters: Mapping of column[__lookup] to value
        start_index: Number of the first $n placeholder

    Returns:
        Tuple of (clause, params); clause is "TRUE" when there are no filters
    """
    conditions = []
    params = []
    param_idx = start_index

    for key, value in filters.items():
        column, _, lookup = key.partition("__")
        _check_column(column)

        if lookup:
            if lookup not in _LOOKUPS:
                raise ValueError(f"Unsupported filter lookup: {key}")
            conditions.append(f"{column} {_LOOKUPS[lookup]} ${param_idx}")
        elif value is None:
            conditions.append(f"{column} IS NULL")
            continue
        elif isinstance(value, (list, tuple, set, frozenset)):
            value = list(value)
            conditions.append(f"{column} = ANY(${param_idx})")
        else:
            conditions.append(f"{column} = ${param_idx}")

        params.append(_to_db(column, value))
        param_idx += 1

    where_clause = " AND ".join(conditions) if conditions else "TRUE"
    return where_clause, params


def build_order_by(order_by: Optional[str]) -> str:
    """Translate "column" / "-column" into an ORDER BY clause."""
    if not order_by:
        return ""
    direction = "DESC" if order_by.startswith("-") else "ASC"
    column = _check_column(order_by.lstrip("-"))
    return f"ORDER BY {column} {direction} NULLS LAST"


class EventStore:
    """
    Database operations for scheduled events.

    Only this class knows about SQL; the scheduler works with
    ScheduledEvent objects and keyword filters.
    """

    def __init__(self, db_pool: asyncpg.Pool):
        """
        Initialize the event store.

        Args:
            db_pool: asyncpg connection pool
        """
        self.db = db_pool

    async def create(self, event: ScheduledEvent) -> ScheduledEvent:
        """Insert a new event and return it as stored (with id and timestamps)."""
        placeholders = ", ".join(f"${i}" for i in range(1, len(_INSERT_COLUMNS) + 1))
        values = [_to_db(column, getattr(event, column)) for column in _INSERT_COLUMNS]

        row = await self.db.fetchrow(
            f"""
            INSERT INTO scheduled_events ({", ".join(_INSERT_COLUMNS)})
            VALUES ({placeholders})
            RETURNING *
            """,
            *values,
        )
        return ScheduledEvent.from_row(row)

    async def find_one(self, **filters: Any) -> Optional[ScheduledEvent]:
        """Return the first event matching the filters, or None."""
        where_clause, params = build_where(filters)
        row = await self.db.fetchrow(
            f"SELECT * FROM scheduled_events WHERE {where_clause} LIMIT 1",
            *params,
        )
        return ScheduledEvent.from_row(row) if row else None

    async def find_all(
        self,
        filters: Optional[dict[str, Any]] = None,
        limit: Optional[int] = None,
        order_by: Optional[str] = None,
    ) -> list[ScheduledEvent]:
        """
        Return events matching the filters.

        Args:
            filters: Keyword filters (see module docstring)
            limit: Maximum number of rows
            order_by: Column name, prefixed with "-" for descending
        """
        where_clause, params = build_where(filters or {})
        query = f"SELECT * FROM scheduled_events WHERE {where_clause} {build_order_by(order_by)}"
        if limit is not None:
            params.append(limit)
            query += f" LIMIT ${len(params)}"

        rows = await self.db.fetch(query, *params)
        return [ScheduledEvent.from_row(row) for row in rows]

    async def update(self, patch: dict[str, Any], **filters: Any) -> int:
        """
        Apply a partial update to all events matching the filters.

        Returns:
            Number of rows updated
        """
        if not patch:
            return 0
        if not filters:
            raise ValueError("Refusing to update scheduled events without a filter")

        assignments = []
        params = []
        for idx, (column, value) in enumerate(patch.items(), start=1):
            _check_column(column)
            assignments.append(f"{column} = ${idx}")
            params.append(_to_db(column, value))

        where_clause, where_params = build_where(filters, start_index=len(params) + 1)
        result = await self.db.execute(
            f"""
            UPDATE scheduled_events
            SET {", ".join(assignments)}, updated_at = NOW()
            WHERE {where_clause}
            """,
            *params,
            *where_params,
        )

        # asyncpg returns a status string like "UPDATE 3"
        try:
            return int(result.split()[-1])
        except (AttributeError, ValueError, IndexError):
            return 0

    async def count_by_status(self, guild_id: Optional[int] = None) -> dict[str, int]:
        """Count events per status, optionally for a single guild."""
        if guild_id is not None:
            rows = await self.db.fetch(
                """
                SELECT status, COUNT(*) AS count FROM scheduled_events
                WHERE guild_id = $1
                GROUP BY status
                """,
                guild_id,
            )
        else:
            rows = await self.db.fetch(
                "SELECT status, COUNT(*) AS count FROM scheduled_events GROUP BY status"
            )
        return {row["status"]: row["count"] for row in rows}
