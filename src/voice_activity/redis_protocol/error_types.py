"""
Shared exception groupings for cache and serialization code.
"""

import asyncio
from typing import Tuple, Type

import orjson
from redis.exceptions import RedisError

ExceptionTuple = Tuple[Type[BaseException], ...]

# Redis operations may surface redis-py errors along with generic timeout/OS failures.
REDIS_ERRORS: ExceptionTuple = (RedisError, asyncio.TimeoutError, OSError, RuntimeError)

# orjson raises its own decode error (a ValueError subclass) for malformed payloads.
JSON_ERRORS: ExceptionTuple = (orjson.JSONDecodeError, orjson.JSONEncodeError)

SERIALIZATION_ERRORS: ExceptionTuple = (TypeError, ValueError, KeyError)

PARSING_ERRORS: ExceptionTuple = JSON_ERRORS + SERIALIZATION_ERRORS
