"""
SQLite storage backend for completed sessions and activity roll-ups.

The connection is opened once per store instance and guarded by a lock; the
async API runs each unit of work in a worker thread via ``asyncio.to_thread``
so the event loop never blocks on disk I/O.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

import orjson

from voice_activity.data_models import (
    CompletedSession,
    DailyActivityStats,
    DailyAggregate,
    Granularity,
    PeriodAggregate,
    ReportCacheEntry,
)
from voice_activity.exceptions import QueryError, StorageConnectionError
from voice_activity.time_utils import ms_to_date, now_ms

from .query_plan import QueryPlan
from .rollup import RollupHook
from .schema import INDEX_DEFINITIONS, TABLE_SCHEMAS

logger = logging.getLogger(__name__)

# SQLite builds without SQLITE_MAX_VARIABLE_NUMBER overrides cap parameters at 999.
_MAX_IN_PARAMS = 500

_PERIOD_COLUMNS = {
    Granularity.WEEKLY: ("weekly_activity", "week_start", "week_end"),
    Granularity.MONTHLY: ("monthly_activity", "month_start", "month_end"),
}


def _chunks(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for index in range(0, len(items), size):
        yield items[index : index + size]


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class SQLiteActivityStore:
    """Durable store for raw sessions, daily/weekly/monthly roll-ups and rendered reports."""

    def __init__(
        self,
        db_path: Path | str,
        *,
        rollup_hook: Optional[RollupHook] = None,
        timeout: float = 30.0,
    ):
        self.db_path = Path(db_path)
        self._rollup_hook = rollup_hook or RollupHook()
        self._timeout = timeout
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # connection lifecycle
    # ------------------------------------------------------------------

    @property
    def is_memory(self) -> bool:
        return str(self.db_path) == ":memory:"

    def _get_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            try:
                if not self.is_memory:
                    self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._connection = sqlite3.connect(
                    str(self.db_path),
                    check_same_thread=False,
                    timeout=self._timeout,
                )
                self._connection.row_factory = sqlite3.Row
                if not self.is_memory:
                    self._connection.execute("PRAGMA journal_mode = WAL")
                logger.debug("Connected to SQLite database: %s", self.db_path)
            except (sqlite3.Error, OSError) as exc:
                raise StorageConnectionError(f"Failed to open SQLite database {self.db_path}: {exc}") from exc
        return self._connection

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Cursor bound to one transaction: commit on success, rollback on failure."""
        with self._lock:
            conn = self._get_connection()
            cursor = conn.cursor()
            try:
                yield cursor
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise QueryError(f"SQLite query failed: {exc}") from exc
            finally:
                cursor.close()

    def _initialize_sync(self) -> None:
        with self._cursor() as cursor:
            for statement in TABLE_SCHEMAS:
                cursor.execute(statement)
            for statement in INDEX_DEFINITIONS:
                cursor.execute(statement)
        logger.info("SQLite activity store ready at %s", self.db_path)

    async def initialize(self) -> None:
        await asyncio.to_thread(self._initialize_sync)

    def _close_sync(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    async def close(self) -> None:
        await asyncio.to_thread(self._close_sync)

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def _record_completed_session_sync(self, session: CompletedSession) -> bool:
        day = ms_to_date(session.start_time)
        updated_at = now_ms()
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT OR IGNORE INTO completed_sessions
                    (tenant_id, user_id, resource_id, start_time, end_time, duration_ms, session_date, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.tenant_id,
                    session.user_id,
                    session.resource_id,
                    session.start_time,
                    session.end_time,
                    session.duration_ms,
                    day.isoformat(),
                    updated_at,
                ),
            )
            if cursor.rowcount == 0:
                logger.debug("Duplicate completed session ignored: %s", session.natural_key)
                return False

            self._upsert_daily(cursor, session, day, updated_at)
            self._rollup_hook(cursor, session.tenant_id, session.user_id, day, updated_at)
        return True

    @staticmethod
    def _upsert_daily(cursor: sqlite3.Cursor, session: CompletedSession, day: date, updated_at: int) -> None:
        cursor.execute(
            """
            SELECT resources_visited FROM daily_activity
            WHERE tenant_id = ? AND user_id = ? AND activity_date = ?
            """,
            (session.tenant_id, session.user_id, day.isoformat()),
        )
        row = cursor.fetchone()
        resources = set(orjson.loads(row["resources_visited"])) if row else set()
        resources.add(session.resource_id)

        cursor.execute(
            """
            INSERT INTO daily_activity
                (tenant_id, user_id, activity_date, total_time_ms, session_count,
                 first_activity_time, last_activity_time, resources_visited, updated_at)
            VALUES (?, ?, ?, ?, 1, ?, ?, ?, ?)
            ON CONFLICT (tenant_id, user_id, activity_date) DO UPDATE SET
                total_time_ms = daily_activity.total_time_ms + excluded.total_time_ms,
                session_count = daily_activity.session_count + 1,
                first_activity_time = MIN(daily_activity.first_activity_time, excluded.first_activity_time),
                last_activity_time = MAX(daily_activity.last_activity_time, excluded.last_activity_time),
                resources_visited = excluded.resources_visited,
                updated_at = excluded.updated_at
            """,
            (
                session.tenant_id,
                session.user_id,
                day.isoformat(),
                session.duration_ms,
                session.start_time,
                session.end_time,
                orjson.dumps(sorted(resources)).decode("utf-8"),
                updated_at,
            ),
        )

    async def record_completed_session(self, session: CompletedSession) -> bool:
        """Persist ``session`` and refresh its roll-ups; ``False`` when it was already recorded."""
        return await asyncio.to_thread(self._record_completed_session_sync, session)

    def _reset_user_activity_sync(self, tenant_id: str, user_ids: Sequence[str]) -> int:
        removed = 0
        with self._cursor() as cursor:
            for chunk in _chunks(list(user_ids), _MAX_IN_PARAMS):
                params = (tenant_id, *chunk)
                marks = _placeholders(len(chunk))
                for table in ("completed_sessions", "daily_activity", "weekly_activity", "monthly_activity"):
                    cursor.execute(f"DELETE FROM {table} WHERE tenant_id = ? AND user_id IN ({marks})", params)
                    if table == "completed_sessions":
                        removed += cursor.rowcount
        return removed

    async def reset_user_activity(self, tenant_id: str, user_ids: Sequence[str]) -> int:
        """Remove every session and aggregate of ``user_ids`` in ``tenant_id``; returns sessions removed."""
        if not user_ids:
            return 0
        removed = await asyncio.to_thread(self._reset_user_activity_sync, tenant_id, list(user_ids))
        logger.info("Reset activity for %d user(s) in tenant %s (%d sessions removed)", len(user_ids), tenant_id, removed)
        return removed

    def _rebuild_rollups_sync(self, tenant_id: str) -> int:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT user_id, activity_date FROM daily_activity WHERE tenant_id = ?",
                (tenant_id,),
            )
            user_days = [(row["user_id"], date.fromisoformat(row["activity_date"])) for row in cursor.fetchall()]
            cursor.execute("DELETE FROM weekly_activity WHERE tenant_id = ?", (tenant_id,))
            cursor.execute("DELETE FROM monthly_activity WHERE tenant_id = ?", (tenant_id,))
            return self._rollup_hook.rebuild(cursor, tenant_id, user_days, now_ms())

    async def rebuild_rollups(self, tenant_id: str) -> int:
        return await asyncio.to_thread(self._rebuild_rollups_sync, tenant_id)

    # ------------------------------------------------------------------
    # aggregate reads
    # ------------------------------------------------------------------

    def _sum_plan_sync(self, tenant_id: str, user_ids: Sequence[str], plan: QueryPlan) -> Dict[str, int]:
        totals: Dict[str, int] = {user_id: 0 for user_id in user_ids}
        with self._cursor() as cursor:
            for chunk in _chunks(list(totals), _MAX_IN_PARAMS):
                user_marks = _placeholders(len(chunk))
                statements = []
                if plan.daily_ranges:
                    date_clause = " OR ".join("activity_date BETWEEN ? AND ?" for _ in plan.daily_ranges)
                    date_params = [value.isoformat() for pair in plan.daily_ranges for value in pair]
                    statements.append(("daily_activity", f"({date_clause})", date_params))
                if plan.week_starts:
                    statements.append(
                        (
                            "weekly_activity",
                            f"week_start IN ({_placeholders(len(plan.week_starts))})",
                            [value.isoformat() for value in plan.week_starts],
                        )
                    )
                if plan.month_starts:
                    statements.append(
                        (
                            "monthly_activity",
                            f"month_start IN ({_placeholders(len(plan.month_starts))})",
                            [value.isoformat() for value in plan.month_starts],
                        )
                    )
                for table, period_clause, period_params in statements:
                    cursor.execute(
                        f"""
                        SELECT user_id, SUM(total_time_ms) AS total
                        FROM {table}
                        WHERE tenant_id = ? AND user_id IN ({user_marks}) AND {period_clause}
                        GROUP BY user_id
                        """,
                        (tenant_id, *chunk, *period_params),
                    )
                    for row in cursor.fetchall():
                        totals[row["user_id"]] += int(row["total"] or 0)
        return totals

    async def sum_plan(self, tenant_id: str, user_ids: Sequence[str], plan: QueryPlan) -> Dict[str, int]:
        """Grouped totals for ``user_ids`` over the tables named by ``plan``."""
        return await asyncio.to_thread(self._sum_plan_sync, tenant_id, list(user_ids), plan)

    def _sum_raw_sessions_sync(self, tenant_id: str, user_id: str, start: date, end: date) -> int:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT COALESCE(SUM(duration_ms), 0) AS total
                FROM completed_sessions
                WHERE tenant_id = ? AND user_id = ? AND session_date BETWEEN ? AND ?
                """,
                (tenant_id, user_id, start.isoformat(), end.isoformat()),
            )
            return int(cursor.fetchone()["total"])

    async def sum_raw_sessions(self, tenant_id: str, user_id: str, start: date, end: date) -> int:
        """Unoptimized per-user total straight from ``completed_sessions``."""
        return await asyncio.to_thread(self._sum_raw_sessions_sync, tenant_id, user_id, start, end)

    def _fetch_daily_sync(self, tenant_id: str, user_id: str, start: date, end: date) -> List[DailyAggregate]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT * FROM daily_activity
                WHERE tenant_id = ? AND user_id = ? AND activity_date BETWEEN ? AND ?
                ORDER BY activity_date
                """,
                (tenant_id, user_id, start.isoformat(), end.isoformat()),
            )
            return [
                DailyAggregate(
                    user_id=row["user_id"],
                    tenant_id=row["tenant_id"],
                    date=date.fromisoformat(row["activity_date"]),
                    total_time_ms=row["total_time_ms"],
                    session_count=row["session_count"],
                    first_activity_time=row["first_activity_time"],
                    last_activity_time=row["last_activity_time"],
                    resources_visited=tuple(orjson.loads(row["resources_visited"])),
                )
                for row in cursor.fetchall()
            ]

    async def fetch_daily(self, tenant_id: str, user_id: str, start: date, end: date) -> List[DailyAggregate]:
        return await asyncio.to_thread(self._fetch_daily_sync, tenant_id, user_id, start, end)

    def _fetch_periods_sync(
        self, tenant_id: str, user_id: str, granularity: Granularity, start: date, end: date
    ) -> List[PeriodAggregate]:
        table, start_column, end_column = _PERIOD_COLUMNS[granularity]
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT * FROM {table}
                WHERE tenant_id = ? AND user_id = ? AND {start_column} BETWEEN ? AND ?
                ORDER BY {start_column}
                """,
                (tenant_id, user_id, start.isoformat(), end.isoformat()),
            )
            return [
                PeriodAggregate(
                    user_id=row["user_id"],
                    tenant_id=row["tenant_id"],
                    granularity=granularity,
                    period_start=date.fromisoformat(row[start_column]),
                    period_end=date.fromisoformat(row[end_column]),
                    total_time_ms=row["total_time_ms"],
                    session_count=row["session_count"],
                    active_days=row["active_days"],
                )
                for row in cursor.fetchall()
            ]

    async def fetch_periods(
        self, tenant_id: str, user_id: str, granularity: Granularity, start: date, end: date
    ) -> List[PeriodAggregate]:
        """Weekly or monthly rows whose period starts within ``[start, end]``."""
        if granularity is Granularity.DAILY:
            raise ValueError("Use fetch_daily for daily rows")
        return await asyncio.to_thread(self._fetch_periods_sync, tenant_id, user_id, granularity, start, end)

    def _daily_stats_sync(self, tenant_id: str, start: date, end: date) -> List[DailyActivityStats]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT activity_date,
                       COUNT(DISTINCT user_id) AS active_users,
                       SUM(total_time_ms) AS total_time_ms,
                       SUM(session_count) AS total_sessions
                FROM daily_activity
                WHERE tenant_id = ? AND activity_date BETWEEN ? AND ? AND total_time_ms > 0
                GROUP BY activity_date
                ORDER BY activity_date
                """,
                (tenant_id, start.isoformat(), end.isoformat()),
            )
            return [
                DailyActivityStats(
                    date=date.fromisoformat(row["activity_date"]),
                    active_users=row["active_users"],
                    total_time_ms=row["total_time_ms"],
                    total_sessions=row["total_sessions"],
                )
                for row in cursor.fetchall()
            ]

    async def get_daily_activity_stats(self, tenant_id: str, start: date, end: date) -> List[DailyActivityStats]:
        return await asyncio.to_thread(self._daily_stats_sync, tenant_id, start, end)

    # ------------------------------------------------------------------
    # report cache table
    # ------------------------------------------------------------------

    def _put_report_sync(self, entry: ReportCacheEntry) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO report_cache
                    (cache_key, tenant_id, filter_name, start_date, end_date, report_data,
                     user_count, generation_time_ms, created_at, expires_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (cache_key) DO UPDATE SET
                    report_data = excluded.report_data,
                    user_count = excluded.user_count,
                    generation_time_ms = excluded.generation_time_ms,
                    created_at = excluded.created_at,
                    expires_at = excluded.expires_at
                """,
                (
                    entry.cache_key,
                    entry.tenant_id,
                    entry.filter_name,
                    entry.start_date.isoformat(),
                    entry.end_date.isoformat(),
                    orjson.dumps(entry.payload).decode("utf-8"),
                    entry.user_count,
                    entry.generation_time_ms,
                    entry.generated_at,
                    entry.expires_at,
                ),
            )

    async def put_report(self, entry: ReportCacheEntry) -> None:
        await asyncio.to_thread(self._put_report_sync, entry)

    def _get_report_sync(self, cache_key: str, now: int) -> Optional[ReportCacheEntry]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM report_cache WHERE cache_key = ? AND expires_at > ?",
                (cache_key, now),
            )
            row = cursor.fetchone()
        if row is None:
            return None
        return ReportCacheEntry(
            cache_key=row["cache_key"],
            tenant_id=row["tenant_id"],
            filter_name=row["filter_name"],
            start_date=date.fromisoformat(row["start_date"]),
            end_date=date.fromisoformat(row["end_date"]),
            payload=orjson.loads(row["report_data"]),
            generated_at=row["created_at"],
            expires_at=row["expires_at"],
            user_count=row["user_count"],
            generation_time_ms=row["generation_time_ms"],
        )

    async def get_report(self, cache_key: str, now: Optional[int] = None) -> Optional[ReportCacheEntry]:
        """Unexpired report row for ``cache_key``."""
        return await asyncio.to_thread(self._get_report_sync, cache_key, now if now is not None else now_ms())

    def _delete_reports_sync(self, where: str, params: Iterable) -> int:
        with self._cursor() as cursor:
            cursor.execute(f"DELETE FROM report_cache WHERE {where}", tuple(params))
            return cursor.rowcount

    async def delete_expired_reports(self, now: Optional[int] = None) -> int:
        cutoff = now if now is not None else now_ms()
        return await asyncio.to_thread(self._delete_reports_sync, "expires_at <= ?", (cutoff,))

    async def delete_reports_for_tenant(self, tenant_id: str) -> int:
        return await asyncio.to_thread(self._delete_reports_sync, "tenant_id = ?", (tenant_id,))

    # ------------------------------------------------------------------
    # diagnostics
    # ------------------------------------------------------------------

    def _health_check_sync(self) -> Dict[str, object]:
        with self._cursor() as cursor:
            counts = {}
            for table in ("completed_sessions", "daily_activity", "weekly_activity", "monthly_activity", "report_cache"):
                cursor.execute(f"SELECT COUNT(*) FROM {table}")
                counts[table] = cursor.fetchone()[0]
        return {"status": "healthy", "db_path": str(self.db_path), "row_counts": counts}

    async def health_check(self) -> Dict[str, object]:
        return await asyncio.to_thread(self._health_check_sync)


__all__ = ["SQLiteActivityStore"]
