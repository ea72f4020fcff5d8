from __future__ import annotations

import pytest

from voice_activity.tenant_settings import ExclusionPolicy


@pytest.mark.asyncio
async def test_exclusions_are_cached_until_invalidated(settings_source, settings_cache, fake_redis):
    settings_source.set_exclusions("g1", fully_excluded=["R1"], activity_limited=["AFK"])
    first = await settings_cache.get_exclusions("g1")

    settings_source.set_exclusions("g1", fully_excluded=["R2"])
    cached = await settings_cache.get_exclusions("g1")
    await settings_cache.invalidate_exclusions("g1")
    fresh = await settings_cache.get_exclusions("g1")

    assert first == cached == ExclusionPolicy(frozenset({"R1"}), frozenset({"AFK"}))
    assert fresh.fully_excluded == frozenset({"R2"})
    assert fake_redis.ttls["voice:settings:g1:exclusions"] == 600


@pytest.mark.asyncio
async def test_threshold_defaults_and_invalidation_drops_rules_aggregate(settings_source, settings_cache, cache, fake_redis):
    assert await settings_cache.get_activity_threshold_hours("g1", "members", 4.0) == 4.0

    settings_source.set_activity_threshold("g1", "members", 2.5)
    await cache.set_json("voice:settings:g1:rules", {"members": 4.0}, 600)
    assert await settings_cache.get_activity_threshold_hours("g1", "members", 4.0) == 4.0

    await settings_cache.invalidate_threshold("g1", "members")

    assert await settings_cache.get_activity_threshold_hours("g1", "members", 4.0) == 2.5
    assert fake_redis.dump_string("voice:settings:g1:rules") is None


def test_policy_semantics():
    policy = ExclusionPolicy(frozenset({"full"}), frozenset({"limited"}))

    assert policy.excluded == {"full", "limited"}
    assert not policy.is_tracked("limited")
    assert policy.logs_activity("limited")
    assert not policy.logs_activity("full")
    assert not policy.is_tracked(None)
    assert ExclusionPolicy.from_payload(policy.to_payload()) == policy
