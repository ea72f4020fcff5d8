"""
Two-level memoization of rendered reports.

Entries live in the distributed cache for fast hits and in the ``report_cache``
table so they survive restarts; ``expires_at`` bounds both.
"""

from __future__ import annotations

import logging
from typing import Optional

from voice_activity.cache import ReadThroughCache
from voice_activity.data_models import DateRange, ReportCacheEntry, ReportResult
from voice_activity.exceptions import DataError
from voice_activity.redis_schema import RedisNamespace, ReportKey, sanitize_segment
from voice_activity.time_utils import MS_PER_SECOND, now_ms

from .sqlite_backend import SQLiteActivityStore

logger = logging.getLogger(__name__)


class ReportCache:
    def __init__(self, store: SQLiteActivityStore, cache: ReadThroughCache, ttl_seconds: int = 21_600):
        self._store = store
        self._cache = cache
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def cache_key(tenant_id: str, filter_name: str, date_range: DateRange) -> str:
        return ReportKey(tenant_id, filter_name, date_range.start_date, date_range.end_date).key()

    async def get(self, tenant_id: str, filter_name: str, date_range: DateRange, operation_id: str) -> Optional[ReportResult]:
        """Cached result for the request, or ``None`` on miss, expiry or malformed payload."""
        key = self.cache_key(tenant_id, filter_name, date_range)
        payload = await self._cache.get_json(key)

        if payload is None:
            entry = await self._store.get_report(key)
            if entry is None:
                return None
            payload = entry.payload
            remaining_seconds = (entry.expires_at - now_ms()) // MS_PER_SECOND
            if remaining_seconds > 0:
                await self._cache.set_json(key, payload, int(remaining_seconds))

        try:
            return ReportResult.from_payload(operation_id, payload)
        except DataError as exc:  # Malformed entry is a miss  # policy_guard: allow-silent-handler
            logger.warning("Ignoring malformed cached report %s: %s", key, exc)
            await self._cache.invalidate(key)
            return None

    async def put(self, result: ReportResult, generation_time_ms: int) -> ReportCacheEntry:
        key = self.cache_key(result.tenant_id, result.filter_name, result.date_range)
        generated_at = now_ms()
        payload = result.to_payload()
        entry = ReportCacheEntry(
            cache_key=key,
            tenant_id=result.tenant_id,
            filter_name=result.filter_name,
            start_date=result.date_range.start_date,
            end_date=result.date_range.end_date,
            payload=payload,
            generated_at=generated_at,
            expires_at=generated_at + self.ttl_seconds * MS_PER_SECOND,
            user_count=result.buckets.total,
            generation_time_ms=generation_time_ms,
        )
        await self._store.put_report(entry)
        await self._cache.set_json(key, payload, self.ttl_seconds)
        logger.debug("Cached report %s (%d users, %dms)", key, entry.user_count, generation_time_ms)
        return entry

    async def invalidate_tenant(self, tenant_id: str) -> int:
        """Drop every cached report of ``tenant_id``; used after activity resets."""
        prefix = f"{RedisNamespace.REPORTS.value}:{sanitize_segment(tenant_id)}:"
        keys = await self._cache.keys_with_prefix(prefix)
        if keys:
            await self._cache.invalidate(*keys)
        return await self._store.delete_reports_for_tenant(tenant_id)

    async def cleanup_expired(self) -> int:
        removed = await self._store.delete_expired_reports()
        if removed:
            logger.info("🧹 Removed %d expired report cache rows", removed)
        return removed


__all__ = ["ReportCache"]
