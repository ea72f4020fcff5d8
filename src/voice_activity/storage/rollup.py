"""
Post-write roll-up hook.

After a completed session lands in ``daily_activity`` the owning week and month
rows are recomputed from their constituent days inside the same transaction.
Recomputing from source rather than applying deltas keeps weekly and monthly
totals equal to the sum of their days under replay and out-of-order writes.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date
from typing import Iterable

from voice_activity.time_utils import month_end, month_start, week_end, week_start

logger = logging.getLogger(__name__)

_PERIOD_TABLES = {
    "weekly": ("weekly_activity", "week_start", "week_end"),
    "monthly": ("monthly_activity", "month_start", "month_end"),
}


def _recompute_period(
    cursor: sqlite3.Cursor,
    period: str,
    tenant_id: str,
    user_id: str,
    start: date,
    end: date,
    updated_at: int,
) -> None:
    table, start_column, end_column = _PERIOD_TABLES[period]
    cursor.execute(
        """
        SELECT COALESCE(SUM(total_time_ms), 0), COALESCE(SUM(session_count), 0), COUNT(*)
        FROM daily_activity
        WHERE tenant_id = ? AND user_id = ? AND activity_date BETWEEN ? AND ?
        """,
        (tenant_id, user_id, start.isoformat(), end.isoformat()),
    )
    total_time_ms, session_count, active_days = cursor.fetchone()

    if active_days == 0:
        cursor.execute(
            f"DELETE FROM {table} WHERE tenant_id = ? AND user_id = ? AND {start_column} = ?",
            (tenant_id, user_id, start.isoformat()),
        )
        return

    cursor.execute(
        f"""
        INSERT INTO {table} (tenant_id, user_id, {start_column}, {end_column},
                             total_time_ms, session_count, active_days, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT (tenant_id, user_id, {start_column}) DO UPDATE SET
            total_time_ms = excluded.total_time_ms,
            session_count = excluded.session_count,
            active_days = excluded.active_days,
            updated_at = excluded.updated_at
        """,
        (
            tenant_id,
            user_id,
            start.isoformat(),
            end.isoformat(),
            total_time_ms,
            session_count,
            active_days,
            updated_at,
        ),
    )


class RollupHook:
    """Synchronous hook run by the store after each daily-row change."""

    def __call__(self, cursor: sqlite3.Cursor, tenant_id: str, user_id: str, day: date, updated_at: int) -> None:
        _recompute_period(cursor, "weekly", tenant_id, user_id, week_start(day), week_end(day), updated_at)
        _recompute_period(cursor, "monthly", tenant_id, user_id, month_start(day), month_end(day), updated_at)

    def rebuild(self, cursor: sqlite3.Cursor, tenant_id: str, user_days: Iterable[tuple[str, date]], updated_at: int) -> int:
        """Recompute every period touched by ``user_days``; returns the number of periods rebuilt."""
        weeks: set[tuple[str, date]] = set()
        months: set[tuple[str, date]] = set()
        for user_id, day in user_days:
            weeks.add((user_id, week_start(day)))
            months.add((user_id, month_start(day)))

        for user_id, start in sorted(weeks):
            _recompute_period(cursor, "weekly", tenant_id, user_id, start, week_end(start), updated_at)
        for user_id, start in sorted(months):
            _recompute_period(cursor, "monthly", tenant_id, user_id, start, month_end(start), updated_at)

        logger.debug("Rebuilt %d weekly and %d monthly rows for tenant %s", len(weeks), len(months), tenant_id)
        return len(weeks) + len(months)
