from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from voice_activity.cache import ReadThroughCache
from voice_activity.exceptions import DataError


@pytest.mark.asyncio
async def test_get_or_load_populates_once(cache, fake_redis):
    loader = AsyncMock(return_value={"hours": 3})

    first = await cache.get_or_load("voice:settings:g:rule:members", loader, 600)
    second = await cache.get_or_load("voice:settings:g:rule:members", loader, 600)

    assert first == second == {"hours": 3}
    loader.assert_awaited_once()
    assert fake_redis.ttls["voice:settings:g:rule:members"] == 600


@pytest.mark.asyncio
async def test_none_results_are_not_cached(cache):
    loader = AsyncMock(return_value=None)

    assert await cache.get_or_load("k", loader, 60) is None
    assert await cache.get_or_load("k", loader, 60) is None
    assert loader.await_count == 2


@pytest.mark.asyncio
async def test_malformed_json_is_treated_as_miss(cache, fake_redis):
    await fake_redis.set("k", "{not json")

    assert await cache.get_json("k") is None
    assert fake_redis.dump_string("k") is None


@pytest.mark.asyncio
async def test_decode_failure_reloads(cache):
    await cache.set_json("k", {"legacy": True}, 60)

    def decode(payload):
        if "value" not in payload:
            raise DataError("old format")
        return payload["value"]

    value = await cache.get_or_load("k", AsyncMock(return_value={"value": 7}), 60, decode=decode)

    assert value == {"value": 7}
    assert await cache.get_json("k") == {"value": 7}


@pytest.mark.asyncio
async def test_invalidate_removes_derived_keys(local_backend):
    cache = ReadThroughCache(local_backend)
    for key in ("rule", "rules", "other"):
        await cache.set_json(key, 1, 60)

    await cache.invalidate("rule", "rules")

    assert await cache.keys_with_prefix("") == ["other"]
