"""Root pytest configuration and shared fixtures."""

from __future__ import annotations

import fnmatch
from typing import Any

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from voice_activity.cache import FallbackCacheBackend, LocalCacheBackend, ReadThroughCache, RedisCacheBackend
from voice_activity.storage import SQLiteActivityStore, TieredQueryRouter
from voice_activity.tenant_settings import InMemoryTenantSettingsSource, TenantSettingsCache


class FakeRedis:
    """Subset of redis.asyncio.Redis used by the cache layer, with an outage switch."""

    def __init__(self):
        self._data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail = False
        self.closed = False
        self.calls: list[tuple[str, Any]] = []

    def _check(self, command: str, *args: Any) -> None:
        self.calls.append((command, args))
        if self.fail:
            raise RedisConnectionError(f"fake redis unavailable during {command}")

    async def get(self, key: str) -> str | None:
        self._check("get", key)
        return self._data.get(key)

    async def set(self, key: str, value: str | bytes, ex: int | None = None) -> bool:
        self._check("set", key, ex)
        self._data[key] = value if isinstance(value, str) else value.decode()
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        self._check("delete", *keys)
        deleted = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                deleted += 1
            self.ttls.pop(key, None)
        return deleted

    async def scan_iter(self, match: str | None = None, count: int | None = None):
        self._check("scan_iter", match)
        for key in list(self._data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def ping(self) -> str:
        self._check("ping")
        return "PONG"

    async def aclose(self) -> None:
        self.closed = True

    def dump_string(self, key: str) -> str | None:
        """Raw stored value, bypassing the outage switch."""
        return self._data.get(key)

    def keys_snapshot(self) -> list[str]:
        return sorted(self._data)


@pytest.fixture
def fake_redis() -> FakeRedis:
    """Fresh fake Redis per test."""
    return FakeRedis()


@pytest.fixture
def local_backend() -> LocalCacheBackend:
    return LocalCacheBackend(maxsize=1_000)


@pytest.fixture
def fallback_backend(fake_redis: FakeRedis, local_backend: LocalCacheBackend) -> FallbackCacheBackend:
    async def supply_client() -> FakeRedis:
        return fake_redis

    return FallbackCacheBackend(RedisCacheBackend(supply_client), local_backend)


@pytest.fixture
def cache(fallback_backend: FallbackCacheBackend) -> ReadThroughCache:
    """Read-through cache over the fake Redis with a local fallback."""
    return ReadThroughCache(fallback_backend)


@pytest.fixture
def store() -> SQLiteActivityStore:
    """In-memory activity store; tests call ``await store.initialize()`` first."""
    return SQLiteActivityStore(":memory:")


@pytest.fixture
def router(store: SQLiteActivityStore) -> TieredQueryRouter:
    return TieredQueryRouter(store)


@pytest.fixture
def settings_source() -> InMemoryTenantSettingsSource:
    return InMemoryTenantSettingsSource()


@pytest.fixture
def settings_cache(settings_source: InMemoryTenantSettingsSource, cache: ReadThroughCache) -> TenantSettingsCache:
    return TenantSettingsCache(settings_source, cache)
