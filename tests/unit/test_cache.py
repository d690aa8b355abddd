"""Tests for the cache backends and the fallback chain."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from radio_service.core.infrastructure.cache import (
    CacheChain,
    CacheTierError,
    MemoryCacheBackend,
    RedisCacheBackend,
)

pytestmark = pytest.mark.anyio


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _redis_backend(get=None, set_=None, timeout_ms: int = 50) -> RedisCacheBackend:
    client = MagicMock()
    client.get_json = get or AsyncMock(return_value=None)
    client.set_json = set_ or AsyncMock(return_value=True)
    client.close = AsyncMock()
    return RedisCacheBackend(client, timeout_ms=timeout_ms)


async def test_memory_backend_expires_lazily() -> None:
    clock = FakeClock()
    cache = MemoryCacheBackend(max_entries=4, clock=clock)

    await cache.set("k", {"v": 1}, ttl=10)
    clock.now += 9
    assert await cache.get("k") == {"v": 1}

    clock.now += 1
    assert await cache.get("k") is None
    assert len(cache) == 0


async def test_memory_backend_evicts_oldest_insert() -> None:
    cache = MemoryCacheBackend(max_entries=2)

    await cache.set("a", 1, ttl=60)
    await cache.set("b", 2, ttl=60)
    await cache.get("a")
    await cache.set("c", 3, ttl=60)

    assert await cache.get("a") is None
    assert await cache.get("b") == 2
    assert await cache.get("c") == 3


async def test_memory_backend_rewrite_counts_as_newest() -> None:
    cache = MemoryCacheBackend(max_entries=2)

    await cache.set("a", 1, ttl=60)
    await cache.set("b", 2, ttl=60)
    await cache.set("a", 10, ttl=60)
    await cache.set("c", 3, ttl=60)

    assert await cache.get("a") == 10
    assert await cache.get("b") is None


def test_memory_backend_requires_capacity() -> None:
    with pytest.raises(ValueError):
        MemoryCacheBackend(max_entries=0)


async def test_redis_backend_wraps_errors() -> None:
    backend = _redis_backend(get=AsyncMock(side_effect=ConnectionError("refused")))

    with pytest.raises(CacheTierError) as exc_info:
        await backend.get("k")

    assert exc_info.value.tier == "redis"
    assert exc_info.value.operation == "get"


async def test_redis_backend_times_out() -> None:
    async def slow_get(key):
        await asyncio.sleep(1)

    backend = _redis_backend(get=AsyncMock(side_effect=slow_get), timeout_ms=10)

    with pytest.raises(CacheTierError) as exc_info:
        await backend.get("k")

    assert exc_info.value.reason == "timeout"


async def test_chain_prefers_distributed_tier() -> None:
    redis = _redis_backend(get=AsyncMock(return_value={"from": "redis"}))
    chain = CacheChain(redis, MemoryCacheBackend(max_entries=4), memory_ttl=60)
    await chain.set("k", {"from": "memory"}, ttl=60)

    value, tier = await chain.get_with_source("k")

    assert value == {"from": "redis"}
    assert tier == "redis"


async def test_chain_falls_back_to_memory_on_miss_or_error() -> None:
    memory = MemoryCacheBackend(max_entries=4)
    await memory.set("k", "local", ttl=60)

    missing = CacheChain(_redis_backend(), memory, memory_ttl=60)
    assert await missing.get_with_source("k") == ("local", "memory")

    broken = CacheChain(
        _redis_backend(get=AsyncMock(side_effect=OSError("down"))),
        memory,
        memory_ttl=60,
    )
    assert await broken.get_with_source("k") == ("local", "memory")


async def test_chain_set_seeds_memory_even_when_redis_fails() -> None:
    memory = MemoryCacheBackend(max_entries=4)
    set_json = AsyncMock(side_effect=OSError("down"))
    chain = CacheChain(_redis_backend(set_=set_json), memory, memory_ttl=30)

    await chain.set("k", [1, 2, 3], ttl=900)

    set_json.assert_awaited_once_with("k", [1, 2, 3], ex=900)
    assert await memory.get("k") == [1, 2, 3]


async def test_chain_caps_memory_ttl() -> None:
    clock = FakeClock()
    memory = MemoryCacheBackend(max_entries=4, clock=clock)
    chain = CacheChain(None, memory, memory_ttl=30)

    await chain.set("k", "v", ttl=900)
    clock.now += 31

    assert await chain.get("k") is None


async def test_chain_miss_everywhere() -> None:
    chain = CacheChain(_redis_backend(), MemoryCacheBackend(max_entries=4), memory_ttl=30)
    assert await chain.get_with_source("nope") == (None, None)


async def test_chain_shutdown_closes_backends() -> None:
    redis = _redis_backend()
    memory = MemoryCacheBackend(max_entries=4)
    chain = CacheChain(redis, memory, memory_ttl=30)
    await chain.set("k", "v", ttl=30)

    await chain.shutdown()

    redis._client.close.assert_awaited_once()
    assert len(memory) == 0
