from __future__ import annotations

from datetime import date

import orjson
import pytest

from voice_activity.data_models import (
    ClassificationBuckets,
    ClassifiedUser,
    DateRange,
    ReportResult,
    ReportStatistics,
)
from voice_activity.storage import ReportCache
from voice_activity.time_utils import MS_PER_DAY, date_to_ms

RANGE = DateRange(date_to_ms(date(2024, 1, 1)), date_to_ms(date(2024, 1, 7)) + MS_PER_DAY - 1)


def _result() -> ReportResult:
    buckets = ClassificationBuckets(
        active=[ClassifiedUser("u1", "Alice", 5 * 3_600_000)],
        inactive=[ClassifiedUser("u2", "Bob", 60_000)],
        afk=[],
    )
    return ReportResult(
        operation_id="op-1",
        tenant_id="guild-1",
        filter_name="members",
        date_range=RANGE,
        buckets=buckets,
        statistics=ReportStatistics(total_members=2, active=1, inactive=1),
        success=True,
    )


@pytest.mark.asyncio
async def test_put_then_get_serves_from_distributed_cache(store, cache, fake_redis):
    await store.initialize()
    reports = ReportCache(store, cache, ttl_seconds=7_200)

    entry = await reports.put(_result(), generation_time_ms=120)
    hit = await reports.get("guild-1", "members", RANGE, "op-2")

    assert entry.user_count == 2
    assert fake_redis.ttls[entry.cache_key] == 7_200
    assert hit is not None
    assert hit.from_cache is True
    assert hit.operation_id == "op-2"
    assert [user.user_id for user in hit.buckets.active] == ["u1"]


@pytest.mark.asyncio
async def test_database_row_repopulates_the_cache(store, cache, fake_redis):
    await store.initialize()
    reports = ReportCache(store, cache)
    entry = await reports.put(_result(), generation_time_ms=5)
    await fake_redis.delete(entry.cache_key)
    await cache.backend.secondary.delete(entry.cache_key)

    hit = await reports.get("guild-1", "members", RANGE, "op-3")

    assert hit is not None and hit.statistics.total_members == 2
    assert fake_redis.dump_string(entry.cache_key) is not None


@pytest.mark.asyncio
async def test_malformed_payload_is_a_miss(store, cache, fake_redis):
    await store.initialize()
    reports = ReportCache(store, cache)
    key = ReportCache.cache_key("guild-1", "members", RANGE)
    await fake_redis.set(key, orjson.dumps({"unexpected": True}).decode())

    assert await reports.get("guild-1", "members", RANGE, "op-4") is None
    assert fake_redis.dump_string(key) is None


@pytest.mark.asyncio
async def test_cleanup_and_tenant_invalidation(store, cache, fake_redis):
    await store.initialize()
    reports = ReportCache(store, cache)
    entry = await reports.put(_result(), generation_time_ms=5)

    assert await reports.cleanup_expired() == 0
    assert await reports.invalidate_tenant("guild-1") == 1
    assert fake_redis.dump_string(entry.cache_key) is None
    assert await reports.get("guild-1", "members", RANGE, "op-5") is None


@pytest.mark.asyncio
async def test_expired_rows_are_removed(store, cache):
    await store.initialize()
    reports = ReportCache(store, cache)
    entry = await reports.put(_result(), generation_time_ms=5)

    assert await store.delete_expired_reports(now=entry.expires_at) == 1
    assert await store.get_report(entry.cache_key) is None
