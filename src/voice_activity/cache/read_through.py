"""Read-through/write-through JSON cache over a ``CacheBackend``."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import orjson

from voice_activity.exceptions import DataError
from voice_activity.redis_protocol.error_types import PARSING_ERRORS

from .backends import CacheBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReadThroughCache:
    """JSON values with type-specific TTLs; malformed entries behave as misses."""

    def __init__(self, backend: CacheBackend):
        self.backend = backend

    async def get_json(self, key: str) -> Optional[Any]:
        raw = await self.backend.get(key)
        if raw is None:
            return None
        try:
            return orjson.loads(raw)
        except PARSING_ERRORS as exc:  # Malformed entry is treated as a miss  # policy_guard: allow-silent-handler
            logger.warning("Discarding malformed cache entry %s: %s", key, exc)
            await self.backend.delete(key)
            return None

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        await self.backend.set(key, orjson.dumps(value).decode("utf-8"), ttl_seconds)

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[T]],
        ttl_seconds: int,
        *,
        encode: Callable[[T], Any] = lambda value: value,
        decode: Callable[[Any], T] = lambda payload: payload,
    ) -> T:
        """
        Return the cached value for ``key`` or load, cache and return it.

        ``decode`` failures are treated like malformed JSON: the entry is
        dropped and the loader runs.
        """
        cached = await self.get_json(key)
        if cached is not None:
            try:
                return decode(cached)
            except PARSING_ERRORS + (DataError,) as exc:  # policy_guard: allow-silent-handler
                logger.warning("Cached value for %s failed to decode: %s", key, exc)
                await self.backend.delete(key)

        value = await loader()
        if value is not None:
            await self.set_json(key, encode(value), ttl_seconds)
        return value

    async def invalidate(self, key: str, *derived_keys: str) -> None:
        """Drop ``key`` and every aggregate key derived from it."""
        await self.backend.delete(key, *derived_keys)

    async def keys_with_prefix(self, prefix: str) -> List[str]:
        return await self.backend.keys_with_prefix(prefix)
