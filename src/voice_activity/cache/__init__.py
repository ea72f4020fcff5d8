"""Distributed cache with transparent in-process fallback."""

from .backends import CacheBackend, FallbackCacheBackend, LocalCacheBackend, RedisCacheBackend
from .read_through import ReadThroughCache
from .ttl import CacheTTL

__all__ = [
    "CacheBackend",
    "CacheTTL",
    "FallbackCacheBackend",
    "LocalCacheBackend",
    "ReadThroughCache",
    "RedisCacheBackend",
]
