from __future__ import annotations

"""
Structural type for the Redis commands the cache layer issues.

``redis.asyncio.Redis`` satisfies it, as does any in-memory stand-in that
implements the same coroutine methods.
"""


from typing import AsyncIterator, Optional, Protocol, Union


class RedisClient(Protocol):
    async def get(self, name: str) -> Optional[Union[str, bytes]]: ...

    async def set(self, name: str, value: Union[str, bytes], ex: Optional[int] = None) -> object: ...

    async def delete(self, *names: str) -> int: ...

    def scan_iter(self, match: Optional[str] = None, count: Optional[int] = None) -> AsyncIterator[str]: ...

    async def ping(self) -> object: ...

    async def aclose(self) -> None: ...


__all__ = ["RedisClient"]
