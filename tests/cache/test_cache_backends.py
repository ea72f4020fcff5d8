from __future__ import annotations

import pytest

from voice_activity.cache import LocalCacheBackend, ReadThroughCache, RedisCacheBackend


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_local_backend_honors_per_entry_ttl():
    clock = _Clock()
    backend = LocalCacheBackend(maxsize=10, timer=clock)
    await backend.set("short", "a", 5)
    await backend.set("long", "b", 60)

    clock.now = 6.0

    assert await backend.get("short") is None
    assert await backend.get("long") == "b"
    assert await backend.keys_with_prefix("") == ["long"]


@pytest.mark.asyncio
async def test_local_backend_is_bounded():
    backend = LocalCacheBackend(maxsize=2)
    await backend.set("a", "1", 60)
    await backend.set("b", "2", 60)
    await backend.get("a")
    await backend.set("c", "3", 60)

    assert len(backend) == 2
    assert await backend.get("b") is None
    assert await backend.get("a") == "1"


@pytest.mark.asyncio
async def test_local_backend_expire_counts_removed_entries():
    clock = _Clock()
    backend = LocalCacheBackend(maxsize=10, timer=clock)
    await backend.set("a", "1", 1)
    await backend.set("b", "2", 100)
    clock.now = 2.0

    assert backend.expire() == 1
    assert backend.expire() == 0


@pytest.mark.asyncio
async def test_redis_backend_sets_expiry_and_scans_prefix(fake_redis):
    async def supply_client():
        return fake_redis

    backend = RedisCacheBackend(supply_client)
    await backend.set("voice:session:g:u1", "x", 30)
    await backend.set("voice:report:g:r", "y", 0)

    assert fake_redis.ttls == {"voice:session:g:u1": 30, "voice:report:g:r": 1}
    assert await backend.keys_with_prefix("voice:session:") == ["voice:session:g:u1"]
    await backend.delete("voice:session:g:u1")
    assert await backend.get("voice:session:g:u1") is None


@pytest.mark.asyncio
async def test_fallback_is_transparent_when_redis_fails(fake_redis, fallback_backend, local_backend):
    cache = ReadThroughCache(fallback_backend)
    await cache.set_json("voice:settings:g:exclusions", {"fully_excluded": ["r1"]}, 600)

    fake_redis.fail = True
    value = await cache.get_json("voice:settings:g:exclusions")
    await cache.set_json("voice:settings:g:rules", {"hours": 2}, 600)
    keys = await cache.keys_with_prefix("voice:settings:g:")
    await cache.invalidate("voice:settings:g:rules")

    assert value == {"fully_excluded": ["r1"]}
    assert fallback_backend.degraded is True
    assert sorted(keys) == ["voice:settings:g:exclusions", "voice:settings:g:rules"]
    assert await local_backend.get("voice:settings:g:rules") is None


@pytest.mark.asyncio
async def test_fallback_recovers_and_reads_local_writes_made_during_outage(fake_redis, fallback_backend):
    fake_redis.fail = True
    await fallback_backend.set("k", "written-offline", 60)
    fake_redis.fail = False

    assert await fallback_backend.get("k") == "written-offline"
    assert fallback_backend.degraded is False


@pytest.mark.asyncio
async def test_fallback_mirrors_writes_locally(fake_redis, fallback_backend, local_backend):
    await fallback_backend.set("k", "v", 60)

    assert fake_redis.dump_string("k") == "v"
    assert await local_backend.get("k") == "v"


@pytest.mark.asyncio
async def test_delete_missed_during_outage_is_replayed(fake_redis, fallback_backend):
    await fallback_backend.set("voice:session:g:u1", "open", 60)
    fake_redis.fail = True
    await fallback_backend.delete("voice:session:g:u1")

    assert fallback_backend.pending_keys == ["voice:session:g:u1"]
    assert await fallback_backend.get("voice:session:g:u1") is None
    assert fake_redis.dump_string("voice:session:g:u1") == "open"

    fake_redis.fail = False
    assert await fallback_backend.get("voice:session:g:u1") is None
    assert fake_redis.dump_string("voice:session:g:u1") is None
    assert fallback_backend.pending_keys == []
    assert await fallback_backend.keys_with_prefix("voice:session:") == []


@pytest.mark.asyncio
async def test_writes_missed_during_outage_reach_redis_with_their_ttl(fake_redis, fallback_backend):
    await fallback_backend.set("k", "before", 60)
    fake_redis.fail = True
    await fallback_backend.set("k", "offline", 45)
    fake_redis.fail = False

    await fallback_backend.keys_with_prefix("unrelated:")

    assert fake_redis.dump_string("k") == "offline"
    assert fake_redis.ttls["k"] == 45
    assert fallback_backend.pending_keys == []
