from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock

import pytest

from voice_activity.cache import CacheTTL
from voice_activity.config.shared import TrackerSettings
from voice_activity.data_models import ActivityLevel, TransitionEvent, TransitionKind
from voice_activity.exceptions import QueryError
from voice_activity.session_tracker import SessionTracker
from voice_activity.time_utils import MS_PER_HOUR, date_to_ms

TENANT = "guild-1"
T0 = date_to_ms(date(2024, 3, 4)) + 9 * MS_PER_HOUR


class _RecordingLog:
    def __init__(self) -> None:
        self.entries: list[tuple[str, TransitionKind, str]] = []

    async def record(self, event: TransitionEvent, kind: TransitionKind, resource_id: str) -> None:
        self.entries.append((event.user_id, kind, resource_id))


def _event(user_id: str, old: str | None, new: str | None, timestamp: int, display_name: str = "") -> TransitionEvent:
    return TransitionEvent(user_id, TENANT, old, new, timestamp, display_name=display_name)


@pytest.fixture
def activity_log() -> _RecordingLog:
    return _RecordingLog()


@pytest.fixture
def tracker(store, settings_cache, cache, router, activity_log) -> SessionTracker:
    return SessionTracker(
        activity_store=store,
        settings_cache=settings_cache,
        cache=cache,
        router=router,
        settings=TrackerSettings(),
        ttl=CacheTTL(),
        activity_log=activity_log,
        clock=lambda: T0 + 2 * MS_PER_HOUR,
    )


@pytest.mark.asyncio
async def test_three_users_in_one_room_accrue_one_hour_each(store, router, tracker):
    await store.initialize()
    for user_id in ("u1", "u2", "u3"):
        await tracker.on_transition(_event(user_id, None, "R1", T0))
    for user_id in ("u1", "u2", "u3"):
        await tracker.on_transition(_event(user_id, "R1", None, T0 + MS_PER_HOUR))

    totals = await router.query_batch(["u1", "u2", "u3"], TENANT, T0, T0 + MS_PER_HOUR)

    assert totals == {"u1": MS_PER_HOUR, "u2": MS_PER_HOUR, "u3": MS_PER_HOUR}
    assert tracker.active_session_count == 0
    stats = tracker.get_statistics()
    assert stats["total_joins"] == 3
    assert stats["peak_concurrent"] == 3
    assert stats["average_session_ms"] == MS_PER_HOUR


@pytest.mark.asyncio
async def test_exclusion_added_mid_session_still_closes_but_blocks_rejoin(
    store, router, tracker, settings_source, settings_cache, activity_log
):
    await store.initialize()
    await tracker.on_transition(_event("u1", None, "R1", T0))

    settings_source.set_exclusions(TENANT, fully_excluded=["R1"])
    await settings_cache.invalidate_exclusions(TENANT)

    await tracker.on_transition(_event("u1", "R1", None, T0 + MS_PER_HOUR))
    decision = await tracker.on_transition(_event("u1", None, "R1", T0 + 2 * MS_PER_HOUR))

    assert await router.query_range("u1", TENANT, T0, T0 + MS_PER_HOUR) == MS_PER_HOUR
    assert decision.start_resource_id is None
    assert await tracker.get_active_session(TENANT, "u1") is None
    # Fully excluded resources are not logged once the policy is in force
    assert activity_log.entries == [("u1", TransitionKind.JOIN, "R1")]


@pytest.mark.asyncio
async def test_activity_limited_resources_are_logged_but_not_timed(store, tracker, settings_source, activity_log):
    await store.initialize()
    settings_source.set_exclusions(TENANT, activity_limited=["AFK"])

    await tracker.on_transition(_event("u1", None, "AFK", T0))

    assert await tracker.get_active_session(TENANT, "u1") is None
    assert activity_log.entries == [("u1", TransitionKind.JOIN, "AFK")]


@pytest.mark.asyncio
async def test_move_between_tracked_rooms_splits_the_session(store, router, tracker):
    await store.initialize()
    await tracker.on_transition(_event("u1", None, "R1", T0))
    await tracker.on_transition(_event("u1", "R1", "R2", T0 + MS_PER_HOUR))

    active = await tracker.get_active_session(TENANT, "u1")
    assert active is not None
    assert (active.resource_id, active.start_time) == ("R2", T0 + MS_PER_HOUR)
    assert await router.query_range("u1", TENANT, T0, T0) == MS_PER_HOUR


@pytest.mark.asyncio
async def test_move_into_excluded_room_closes_without_restarting(store, router, tracker, settings_source):
    await store.initialize()
    settings_source.set_exclusions(TENANT, fully_excluded=["Lobby"])
    await tracker.on_transition(_event("u1", None, "R1", T0))

    await tracker.on_transition(_event("u1", "R1", "Lobby", T0 + MS_PER_HOUR))

    assert await tracker.get_active_session(TENANT, "u1") is None
    assert await router.query_range("u1", TENANT, T0, T0) == MS_PER_HOUR


@pytest.mark.asyncio
async def test_repeated_transition_is_a_noop(store, tracker):
    await store.initialize()
    await tracker.on_transition(_event("u1", None, "R1", T0))

    decision = await tracker.on_transition(_event("u1", "R1", "R1", T0 + 10))

    assert decision.kind is TransitionKind.NOOP
    assert (await tracker.get_active_session(TENANT, "u1")).start_time == T0


@pytest.mark.asyncio
async def test_observer_marker_prevents_session_start(store, tracker):
    await store.initialize()

    await tracker.on_transition(_event("u1", None, "R1", T0, display_name="[관전] Viewer"))

    assert await tracker.get_active_session(TENANT, "u1") is None


@pytest.mark.asyncio
async def test_rejoin_without_leave_resets_start(store, tracker):
    await store.initialize()
    await tracker.on_transition(_event("u1", None, "R1", T0))

    await tracker.on_transition(_event("u1", None, "R2", T0 + MS_PER_HOUR))

    active = await tracker.get_active_session(TENANT, "u1")
    assert (active.resource_id, active.start_time) == ("R2", T0 + MS_PER_HOUR)


@pytest.mark.asyncio
async def test_fire_and_forget_preserves_per_user_order(store, router, tracker):
    await store.initialize()
    for index in range(3):
        start = T0 + index * 2 * MS_PER_HOUR
        tracker.record_transition(_event("u1", None, "R1", start))
        tracker.record_transition(_event("u2", None, "R1", start))
        tracker.record_transition(_event("u1", "R1", None, start + MS_PER_HOUR))
        tracker.record_transition(_event("u2", "R1", None, start + MS_PER_HOUR))

    await tracker.drain()

    totals = await router.query_batch(["u1", "u2"], TENANT, T0, T0 + 6 * MS_PER_HOUR)
    assert totals == {"u1": 3 * MS_PER_HOUR, "u2": 3 * MS_PER_HOUR}
    assert tracker.failed_transitions == 0


@pytest.mark.asyncio
async def test_storage_failure_on_close_keeps_the_session(store, tracker):
    await store.initialize()
    await tracker.on_transition(_event("u1", None, "R1", T0))
    store.record_completed_session = AsyncMock(side_effect=QueryError("disk full"))

    tracker.record_transition(_event("u1", "R1", None, T0 + MS_PER_HOUR))
    await tracker.drain()

    assert tracker.failed_transitions == 1
    assert await tracker.get_active_session(TENANT, "u1") is not None


@pytest.mark.asyncio
async def test_sessions_survive_a_redis_outage(store, router, tracker, fake_redis):
    await store.initialize()
    fake_redis.fail = True

    await tracker.on_transition(_event("u1", None, "R1", T0))
    await tracker.on_transition(_event("u1", "R1", None, T0 + MS_PER_HOUR))

    fake_redis.fail = False
    assert await router.query_range("u1", TENANT, T0, T0) == MS_PER_HOUR


@pytest.mark.asyncio
async def test_user_snapshot_includes_open_session(store, tracker):
    await store.initialize()
    await tracker.on_transition(_event("u1", None, "R1", T0))
    await tracker.on_transition(_event("u1", "R1", None, T0 + MS_PER_HOUR))
    await tracker.on_transition(_event("u1", None, "R2", T0 + MS_PER_HOUR + 1))

    snapshot = await tracker.get_user_snapshot(TENANT, "u1")

    assert snapshot.today_total_ms == MS_PER_HOUR
    assert snapshot.active_resource_id == "R2"
    assert snapshot.total_at(T0 + 2 * MS_PER_HOUR) == 2 * MS_PER_HOUR - 1
    assert snapshot.level_at(T0 + 2 * MS_PER_HOUR) is ActivityLevel.HIGH_ACTIVE


@pytest.mark.asyncio
async def test_session_closed_during_outage_stays_closed_after_recovery(
    store, router, tracker, fake_redis, settings_source, fallback_backend
):
    await store.initialize()
    settings_source.set_exclusions(TENANT, activity_limited=["AFK"])
    await tracker.on_transition(_event("u1", None, "R1", T0))

    fake_redis.fail = True
    await tracker.on_transition(_event("u1", "R1", None, T0 + MS_PER_HOUR))
    fake_redis.fail = False

    assert await tracker.get_active_session(TENANT, "u1") is None
    assert fallback_backend.pending_keys == []
    assert not any(key.startswith("voice:session:") for key in fake_redis.keys_snapshot())
    report = await tracker.restore_active_sessions()
    assert report.restored == 0

    await tracker.on_transition(_event("u1", None, "AFK", T0 + 3 * MS_PER_HOUR))
    await tracker.on_transition(_event("u1", "AFK", None, T0 + 4 * MS_PER_HOUR))

    assert await router.query_range("u1", TENANT, T0, T0) == MS_PER_HOUR
