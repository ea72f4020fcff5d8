"""
Key/value cache backends.

``RedisCacheBackend`` talks to the shared Redis instance and lets transport
errors propagate. ``LocalCacheBackend`` keeps a bounded in-process map with the
same per-entry TTL semantics. ``FallbackCacheBackend`` composes the two so that
callers never observe a Redis outage.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Tuple

from cachetools import TLRUCache

from voice_activity.redis_protocol.error_types import REDIS_ERRORS
from voice_activity.redis_protocol.typing import RedisClient

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, *keys: str) -> None: ...

    async def keys_with_prefix(self, prefix: str) -> List[str]: ...


class RedisCacheBackend:
    """Redis-backed cache; the client is resolved per call so reconnects are picked up."""

    def __init__(self, client_supplier: Callable[[], Awaitable[RedisClient]], *, scan_count: int = 500):
        self._client_supplier = client_supplier
        self._scan_count = scan_count

    async def get(self, key: str) -> Optional[str]:
        client = await self._client_supplier()
        value = await client.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        client = await self._client_supplier()
        await client.set(key, value, ex=max(1, int(ttl_seconds)))

    async def delete(self, *keys: str) -> None:
        if keys:
            client = await self._client_supplier()
            await client.delete(*keys)

    async def keys_with_prefix(self, prefix: str) -> List[str]:
        client = await self._client_supplier()
        found: List[str] = []
        async for key in client.scan_iter(match=f"{prefix}*", count=self._scan_count):
            found.append(key.decode("utf-8") if isinstance(key, bytes) else key)
        return found


def _entry_expiry(_key: str, value: Tuple[str, float], now: float) -> float:
    return now + value[1]


class LocalCacheBackend:
    """Bounded in-process cache; least recently used entries go first when full."""

    def __init__(self, maxsize: int = 10_000, *, timer: Callable[[], float] = time.monotonic):
        self._entries: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_entry_expiry, timer=timer)

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return entry[0]

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, float(ttl_seconds))

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._entries.pop(key, None)

    async def keys_with_prefix(self, prefix: str) -> List[str]:
        self._entries.expire()
        return [key for key in list(self._entries.keys()) if key.startswith(prefix)]

    def expire(self) -> int:
        """Drop expired entries; returns how many were removed."""
        before = len(self._entries)
        self._entries.expire()
        return before - len(self._entries)

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


class FallbackCacheBackend:
    """
    Try ``primary`` and fall through to ``secondary`` on transport errors.

    Writes are mirrored into ``secondary`` so it can answer reads during an
    outage. Writes and deletes the primary missed are remembered and replayed
    before the next primary operation, so a key deleted during an outage never
    reappears from the primary's stale copy.
    """

    def __init__(self, primary: CacheBackend, secondary: CacheBackend):
        self.primary = primary
        self.secondary = secondary
        self._degraded = False
        # key -> TTL of the missed write, or None for a missed delete
        self._pending: Dict[str, Optional[int]] = {}

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def pending_keys(self) -> List[str]:
        return list(self._pending)

    def _mark_failure(self, operation: str, exc: BaseException) -> None:
        if not self._degraded:
            logger.warning("⚠️ Distributed cache unavailable during %s; using local cache (%s)", operation, exc)
        self._degraded = True

    def _mark_success(self) -> None:
        if self._degraded:
            logger.info("Distributed cache reachable again")
        self._degraded = False

    async def _replay_pending(self) -> None:
        """Push missed changes to the primary; transport errors propagate with the rest still pending."""
        replayed = 0
        while self._pending:
            key, ttl_seconds = next(iter(self._pending.items()))
            value = None if ttl_seconds is None else await self.secondary.get(key)
            if value is None:
                await self.primary.delete(key)
            else:
                await self.primary.set(key, value, ttl_seconds)
            self._pending.pop(key, None)
            replayed += 1
        if replayed:
            logger.info("Replayed %d cache change(s) missed during the outage", replayed)

    async def get(self, key: str) -> Optional[str]:
        try:
            await self._replay_pending()
            value = await self.primary.get(key)
        except REDIS_ERRORS as exc:  # Degrade to local cache  # policy_guard: allow-silent-handler
            self._mark_failure("get", exc)
        else:
            self._mark_success()
            if value is not None:
                return value
        return await self.secondary.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.secondary.set(key, value, ttl_seconds)
        try:
            await self._replay_pending()
            await self.primary.set(key, value, ttl_seconds)
        except REDIS_ERRORS as exc:  # Degrade to local cache  # policy_guard: allow-silent-handler
            self._mark_failure("set", exc)
            self._pending[key] = ttl_seconds
        else:
            self._mark_success()

    async def delete(self, *keys: str) -> None:
        await self.secondary.delete(*keys)
        try:
            await self._replay_pending()
            await self.primary.delete(*keys)
        except REDIS_ERRORS as exc:  # Invalidation failures are not fatal  # policy_guard: allow-silent-handler
            self._mark_failure("delete", exc)
            for key in keys:
                self._pending[key] = None
        else:
            self._mark_success()

    async def keys_with_prefix(self, prefix: str) -> List[str]:
        keys: dict[str, None] = {}
        try:
            await self._replay_pending()
            for key in await self.primary.keys_with_prefix(prefix):
                keys[key] = None
        except REDIS_ERRORS as exc:  # Degrade to local cache  # policy_guard: allow-silent-handler
            self._mark_failure("scan", exc)
        else:
            self._mark_success()
        for key in await self.secondary.keys_with_prefix(prefix):
            keys[key] = None
        return list(keys)


__all__ = ["CacheBackend", "FallbackCacheBackend", "LocalCacheBackend", "RedisCacheBackend"]
