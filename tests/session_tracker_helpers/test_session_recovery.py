from __future__ import annotations

import orjson
import pytest

from voice_activity.data_models import ActiveSession
from voice_activity.session_tracker_helpers import ActiveSessionStore, SessionRecovery
from voice_activity.time_utils import MS_PER_HOUR

NOW = 1_700_000_000_000


@pytest.mark.asyncio
async def test_restore_keeps_fresh_sessions_and_discards_stale(cache, fake_redis):
    writer = ActiveSessionStore(cache)
    await writer.put(ActiveSession("u1", "g1", "R1", NOW - MS_PER_HOUR))
    await writer.put(ActiveSession("u2", "g1", "R1", NOW - 25 * MS_PER_HOUR))
    # A fresh process starts with an empty local mirror
    cache.backend.secondary.clear()
    reader = ActiveSessionStore(cache)

    report = await SessionRecovery(reader, stale_after_seconds=24 * 3600).restore(NOW)

    assert (report.restored, report.discarded) == (1, 1)
    assert set(reader.local) == {("g1", "u1")}
    assert fake_redis.dump_string("voice:session:g1:u2") is None


@pytest.mark.asyncio
async def test_state_store_writes_with_session_ttl(cache, fake_redis):
    store = ActiveSessionStore(cache, ttl_seconds=86_400)

    await store.put(ActiveSession("u1", "g1", "R1", NOW, display_name="Alice"))

    assert fake_redis.ttls["voice:session:g1:u1"] == 86_400
    assert orjson.loads(fake_redis.dump_string("voice:session:g1:u1"))["display_name"] == "Alice"


@pytest.mark.asyncio
async def test_state_store_falls_back_to_local_mirror(cache, fake_redis):
    store = ActiveSessionStore(cache)
    await store.put(ActiveSession("u1", "g1", "R1", NOW))
    fake_redis.fail = True
    cache.backend.secondary.clear()

    session = await store.get("g1", "u1")

    assert session is not None and session.resource_id == "R1"
    await store.delete("g1", "u1")
    assert await store.get("g1", "u1") is None
    assert len(store) == 0


@pytest.mark.asyncio
async def test_malformed_cached_session_is_ignored(cache, fake_redis):
    store = ActiveSessionStore(cache)
    await fake_redis.set("voice:session:g1:u1", orjson.dumps({"user_id": "u1"}).decode())

    assert await store.get("g1", "u1") is None


@pytest.mark.asyncio
async def test_foreign_keys_are_skipped_during_enumeration(cache, fake_redis):
    store = ActiveSessionStore(cache)
    await fake_redis.set("voice:session:broken", "{}")
    await store.put(ActiveSession("u1", "g1", "R1", NOW))

    keys = await store.list_cached_keys()

    assert [(key.tenant_id, key.user_id) for key in keys] == [("g1", "u1")]
