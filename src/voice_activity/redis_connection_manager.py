"""Owns the optional Redis client behind the shared cache."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from voice_activity.redis_protocol.connection import create_redis_client
from voice_activity.redis_protocol.error_types import REDIS_ERRORS
from voice_activity.redis_protocol.typing import RedisClient
from voice_activity.retry import RetryPolicy

logger = logging.getLogger(__name__)

RedisFactory = Callable[[], Awaitable[RedisClient]]

DEFAULT_RECONNECT_POLICY = RetryPolicy(initial_delay=1.0, max_delay=60.0, multiplier=2.0)


class RedisConnectionManager:
    """
    Holds at most one client per service.

    After a failed connect, ``get_client`` reconnects lazily once the backoff
    from ``reconnect_policy`` has elapsed; until then it raises
    ``ConnectionError``, which the fallback cache backend treats like any other
    transport failure and serves from the local cache instead.
    """

    def __init__(
        self,
        connection_factory: Optional[RedisFactory] = None,
        *,
        reconnect_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._factory: RedisFactory = connection_factory or create_redis_client
        self._reconnect_policy = reconnect_policy or DEFAULT_RECONNECT_POLICY
        self._clock = clock
        self._client: Optional[RedisClient] = None
        self._lock = asyncio.Lock()
        self._reconnect_enabled = False
        self._failures = 0
        self._next_attempt_at = 0.0

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def failed_attempts(self) -> int:
        return self._failures

    async def initialize(self) -> None:
        """Replace any current client; factory errors propagate and schedule a lazy reconnect."""
        await self.cleanup()
        self._reconnect_enabled = True
        async with self._lock:
            await self._connect("Redis connection failed")

    async def _connect(self, failure_message: str) -> RedisClient:
        try:
            client = await self._factory()
        except REDIS_ERRORS as exc:
            delay = self._reconnect_policy.delay_for(self._failures)
            self._failures += 1
            self._next_attempt_at = self._clock() + delay
            logger.error("%s: %s; next attempt in %.1fs", failure_message, type(exc).__name__, delay)
            raise
        if self._failures:
            logger.info("🔌 Redis connected after %d failed attempt(s)", self._failures)
        else:
            logger.info("🔌 Redis connected")
        self._client = client
        self._failures = 0
        return client

    async def cleanup(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.aclose()
        except REDIS_ERRORS as exc:  # Client is dropped either way  # policy_guard: allow-silent-handler
            logger.warning("Error closing Redis connection: %s", exc)

    async def close(self) -> None:
        """Drop the client and stop reconnecting."""
        self._reconnect_enabled = False
        await self.cleanup()

    async def get_client(self) -> RedisClient:
        client = self._client
        if client is not None:
            return client
        if not self._reconnect_enabled or self._clock() < self._next_attempt_at:
            raise ConnectionError("Redis client not connected")
        async with self._lock:
            if self._client is not None:
                return self._client
            return await self._connect("Redis reconnect failed")
