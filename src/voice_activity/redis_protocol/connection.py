"""
Redis client construction from ``RedisSettings``.

A single connection pool is created per ``RedisConnectionManager`` rather than
at module scope so tests and multiple services in one process stay isolated.
"""

import logging
from typing import Optional

import redis.asyncio

from ..config.shared import RedisSettings, get_redis_settings
from .error_types import REDIS_ERRORS
from .typing import RedisClient

logger = logging.getLogger(__name__)


def build_connection_pool(settings: RedisSettings) -> redis.asyncio.ConnectionPool:
    """Create an async connection pool honouring the configured timeouts."""
    pool_kwargs = {
        "host": settings.host,
        "port": settings.port,
        "db": settings.db,
        "password": settings.password,
        "socket_timeout": settings.socket_timeout,
        "socket_connect_timeout": settings.socket_connect_timeout,
        "retry_on_timeout": settings.retry_on_timeout,
        "max_connections": settings.max_connections,
        "decode_responses": True,
    }
    if settings.health_check_interval is not None:
        pool_kwargs["health_check_interval"] = settings.health_check_interval
    if settings.ssl:
        pool_kwargs["connection_class"] = redis.asyncio.SSLConnection
    return redis.asyncio.ConnectionPool(**pool_kwargs)


async def create_redis_client(settings: Optional[RedisSettings] = None) -> RedisClient:
    """
    Build a client and verify it with PING.

    Raises:
        ConnectionError: When Redis cannot be reached.
    """
    resolved = settings or get_redis_settings()
    client = redis.asyncio.Redis(connection_pool=build_connection_pool(resolved))
    try:
        await client.ping()
    except REDIS_ERRORS as exc:
        await client.aclose()
        raise ConnectionError(f"Redis connection failed: {type(exc).__name__}: {exc}") from exc

    logger.debug("Redis connection established to %s:%s", resolved.host, resolved.port)
    return client


__all__ = ["build_connection_pool", "create_redis_client"]
