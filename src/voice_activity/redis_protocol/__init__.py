"""Redis client helpers shared by the cache layer."""

from .connection import build_connection_pool, create_redis_client
from .error_types import PARSING_ERRORS, REDIS_ERRORS
from .typing import RedisClient

__all__ = [
    "PARSING_ERRORS",
    "REDIS_ERRORS",
    "RedisClient",
    "build_connection_pool",
    "create_redis_client",
]
