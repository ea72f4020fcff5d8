import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from voice_activity.redis_connection_manager import RedisConnectionManager
from voice_activity.retry import RetryPolicy


class _Clock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _flaky_factory(client, failures: int):
    attempts: list[int] = []

    async def connect():
        attempts.append(len(attempts) + 1)
        if len(attempts) <= failures:
            raise RedisConnectionError("connection refused")
        return client

    return connect, attempts


@pytest.mark.asyncio
async def test_reconnects_lazily_after_backoff(fake_redis):
    clock = _Clock()
    connect, attempts = _flaky_factory(fake_redis, failures=1)
    manager = RedisConnectionManager(connect, reconnect_policy=RetryPolicy(initial_delay=5.0), clock=clock)

    with pytest.raises(RedisConnectionError):
        await manager.initialize()
    assert manager.failed_attempts == 1

    clock.now = 104.0
    with pytest.raises(ConnectionError):
        await manager.get_client()
    assert attempts == [1]

    clock.now = 105.0
    assert await manager.get_client() is fake_redis
    assert attempts == [1, 2]
    assert manager.is_connected is True
    assert manager.failed_attempts == 0


@pytest.mark.asyncio
async def test_reconnect_backoff_grows_between_failures(fake_redis):
    clock = _Clock()
    connect, attempts = _flaky_factory(fake_redis, failures=2)
    manager = RedisConnectionManager(connect, reconnect_policy=RetryPolicy(initial_delay=1.0), clock=clock)

    with pytest.raises(RedisConnectionError):
        await manager.initialize()
    clock.now = 101.0
    with pytest.raises(RedisConnectionError):
        await manager.get_client()

    clock.now = 102.5
    with pytest.raises(ConnectionError):
        await manager.get_client()
    assert attempts == [1, 2]

    clock.now = 103.0
    assert await manager.get_client() is fake_redis


@pytest.mark.asyncio
async def test_closed_manager_does_not_reconnect(fake_redis):
    async def connect():
        return fake_redis

    manager = RedisConnectionManager(connect, reconnect_policy=RetryPolicy(initial_delay=0.0))
    await manager.initialize()
    await manager.close()

    assert fake_redis.closed is True
    with pytest.raises(ConnectionError):
        await manager.get_client()
