from __future__ import annotations

from datetime import date, timedelta
from unittest.mock import AsyncMock

import pytest

from voice_activity.data_models import CompletedSession, Granularity
from voice_activity.exceptions import QueryError
from voice_activity.storage import TieredQueryRouter, plan_range, select_granularity
from voice_activity.time_utils import MS_PER_HOUR, MS_PER_SECOND, date_to_ms

TENANT = "guild-1"
SEED_START = date(2024, 1, 1)


async def _seed(store, users=("u1", "u2")) -> None:
    await store.initialize()
    for offset in range(0, 100):
        day = SEED_START + timedelta(days=offset)
        for index, user_id in enumerate(users):
            if (offset + index) % 3 == 0:
                continue
            start = date_to_ms(day) + (8 + index) * MS_PER_HOUR
            duration = (offset % 4 + 1) * 15 * 60 * MS_PER_SECOND
            await store.record_completed_session(CompletedSession(user_id, TENANT, "room", start, start + duration))


def _days_covered(plan) -> list[date]:
    days: list[date] = []
    for start, end in plan.daily_ranges:
        days.extend(start + timedelta(days=offset) for offset in range((end - start).days + 1))
    for start in plan.week_starts:
        days.extend(start + timedelta(days=offset) for offset in range(7))
    for start in plan.month_starts:
        cursor = start
        while cursor.month == start.month:
            days.append(cursor)
            cursor += timedelta(days=1)
    return sorted(days)


@pytest.mark.parametrize(
    ("days", "expected"),
    [(1, Granularity.DAILY), (7, Granularity.DAILY), (8, Granularity.WEEKLY), (30, Granularity.WEEKLY), (31, Granularity.MONTHLY)],
)
def test_select_granularity_by_span(days, expected):
    start = date(2024, 1, 3)
    assert select_granularity(start, start + timedelta(days=days - 1)) is expected


@pytest.mark.parametrize("granularity", [Granularity.DAILY, Granularity.WEEKLY, Granularity.MONTHLY])
@pytest.mark.parametrize("days", [1, 7, 8, 30, 31, 75])
def test_plans_cover_each_day_exactly_once(granularity, days):
    start = date(2024, 1, 17)
    end = start + timedelta(days=days - 1)

    plan = plan_range(start, end, granularity)

    assert _days_covered(plan) == [start + timedelta(days=offset) for offset in range(days)]


def test_monthly_plan_uses_full_months_and_fills_edges():
    plan = plan_range(date(2024, 1, 20), date(2024, 3, 10))

    assert plan.granularity is Granularity.MONTHLY
    assert plan.month_starts == [date(2024, 2, 1)]
    # 2024-01-22 and 2024-03-04 are Mondays
    assert plan.week_starts == [date(2024, 1, 22), date(2024, 3, 4)]
    assert (date(2024, 1, 20), date(2024, 1, 21)) in plan.daily_ranges
    assert (date(2024, 1, 29), date(2024, 1, 31)) in plan.daily_ranges


def test_plan_rejects_inverted_range():
    with pytest.raises(ValueError):
        plan_range(date(2024, 1, 2), date(2024, 1, 1))


@pytest.mark.asyncio
@pytest.mark.parametrize("days", [1, 7, 8, 30, 31])
async def test_every_granularity_returns_the_raw_total(store, router, days):
    await _seed(store)
    start_day = date(2024, 1, 17)
    end_day = start_day + timedelta(days=days - 1)
    start, end = date_to_ms(start_day), date_to_ms(end_day) + 12 * MS_PER_HOUR

    raw = await store.sum_raw_sessions(TENANT, "u1", start_day, end_day)
    routed = await router.query_range("u1", TENANT, start, end)
    forced = {
        granularity: (await store.sum_plan(TENANT, ["u1"], plan_range(start_day, end_day, granularity)))["u1"]
        for granularity in Granularity
    }

    assert raw > 0
    assert routed == raw
    assert set(forced.values()) == {raw}


@pytest.mark.asyncio
async def test_query_batch_dedupes_and_defaults_to_zero(store, router):
    await _seed(store)
    start, end = date_to_ms(date(2024, 2, 1)), date_to_ms(date(2024, 2, 29))

    totals = await router.query_batch(["u1", "u2", "u1", "ghost"], TENANT, start, end)

    assert list(totals) == ["u1", "u2", "ghost"]
    assert totals["ghost"] == 0
    assert totals["u1"] == await router.query_range("u1", TENANT, start, end)
    assert await router.query_batch([], TENANT, start, end) == {}


@pytest.mark.asyncio
async def test_query_batch_falls_back_to_sequential_raw_queries(store):
    await _seed(store)
    start_day, end_day = date(2024, 1, 5), date(2024, 1, 25)
    expected = {user_id: await store.sum_raw_sessions(TENANT, user_id, start_day, end_day) for user_id in ("u1", "u2")}
    store.sum_plan = AsyncMock(side_effect=QueryError("grouped query failed"))
    router = TieredQueryRouter(store)

    totals = await router.query_batch(["u1", "u2"], TENANT, date_to_ms(start_day), date_to_ms(end_day))

    assert totals == expected
    store.sum_plan.assert_awaited_once()


@pytest.mark.asyncio
async def test_query_batch_fallback_errors_propagate(store):
    await store.initialize()
    store.sum_plan = AsyncMock(side_effect=QueryError("grouped query failed"))
    store.sum_raw_sessions = AsyncMock(side_effect=QueryError("raw query failed"))
    router = TieredQueryRouter(store)

    with pytest.raises(QueryError):
        await router.query_batch(["u1"], TENANT, 0, MS_PER_HOUR)
