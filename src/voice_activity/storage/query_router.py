"""Tiered query router answering range totals from the cheapest roll-up table."""

from __future__ import annotations

import logging
from typing import Dict, Sequence

from voice_activity.data_models.aggregates import Granularity
from voice_activity.exceptions import StorageError
from voice_activity.time_utils import ms_to_date

from .query_plan import QueryPlan, plan_range
from .sqlite_backend import SQLiteActivityStore

logger = logging.getLogger(__name__)


class TieredQueryRouter:
    """Range and batch totals with a sequential raw-table fallback."""

    def __init__(self, store: SQLiteActivityStore):
        self._store = store

    @staticmethod
    def plan(start: int, end: int, granularity: Granularity | None = None) -> QueryPlan:
        return plan_range(ms_to_date(start), ms_to_date(end), granularity)

    async def query_range(self, user_id: str, tenant_id: str, start: int, end: int) -> int:
        """Total milliseconds for one user over the inclusive calendar days covering ``[start, end]``."""
        plan = self.plan(start, end)
        try:
            totals = await self._store.sum_plan(tenant_id, [user_id], plan)
        except StorageError as exc:  # Fall back to raw sessions  # policy_guard: allow-silent-handler
            logger.warning("Roll-up query failed for user %s; using raw sessions: %s", user_id, exc)
            return await self._store.sum_raw_sessions(tenant_id, user_id, ms_to_date(start), ms_to_date(end))
        return totals[user_id]

    async def query_batch(self, user_ids: Sequence[str], tenant_id: str, start: int, end: int) -> Dict[str, int]:
        """
        Totals for many users in one grouped query per roll-up table.

        Users without rows map to 0. When the grouped query fails, each user is
        summed sequentially from the raw sessions table; failures there propagate
        so batch-level retry can take over.
        """
        unique_ids = list(dict.fromkeys(user_ids))
        if not unique_ids:
            return {}

        plan = self.plan(start, end)
        try:
            return await self._store.sum_plan(tenant_id, unique_ids, plan)
        except StorageError as exc:  # Fall back to per-user queries  # policy_guard: allow-silent-handler
            logger.warning(
                "Batched activity query failed for %d users; falling back to sequential queries: %s",
                len(unique_ids),
                exc,
            )

        start_date, end_date = ms_to_date(start), ms_to_date(end)
        totals: Dict[str, int] = {}
        for user_id in unique_ids:
            totals[user_id] = await self._store.sum_raw_sessions(tenant_id, user_id, start_date, end_date)
        return totals


__all__ = ["TieredQueryRouter"]
