"""缓存后端实现。

两个后端共享 get / set / shutdown 接口：
- RedisCacheBackend: 分布式层，TTL 以 Redis 为准，操作带短超时
- MemoryCacheBackend: 进程内层，有界、最早写入优先淘汰、访问时惰性过期
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from radio_service.core.infrastructure.redis import RedisClient


class CacheTierError(RuntimeError):
    """单个缓存层读写失败（调用方应回退到下一层）。"""

    def __init__(self, tier: str, operation: str, reason: str):
        self.tier = tier
        self.operation = operation
        self.reason = reason
        super().__init__(f"{tier} cache {operation} failed: {reason}")


class CacheBackend(ABC):
    """缓存后端接口。"""

    name: str

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """读取缓存值，未命中返回 None。"""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> None:
        """写入缓存值。

        Args:
            key: 缓存键
            value: 可 JSON 序列化的值
            ttl: 过期时间（秒）
        """

    @abstractmethod
    async def shutdown(self) -> None:
        """释放后端资源。"""


class RedisCacheBackend(CacheBackend):
    """Redis 缓存层，任何异常或超时都转换为 CacheTierError。"""

    name = "redis"

    def __init__(self, client: RedisClient, timeout_ms: int):
        self._client = client
        self._timeout = timeout_ms / 1000

    async def get(self, key: str) -> Any | None:
        try:
            return await asyncio.wait_for(
                self._client.get_json(key), timeout=self._timeout
            )
        except TimeoutError as e:
            raise CacheTierError(self.name, "get", "timeout") from e
        except Exception as e:
            raise CacheTierError(self.name, "get", str(e)) from e

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            await asyncio.wait_for(
                self._client.set_json(key, value, ex=ttl), timeout=self._timeout
            )
        except TimeoutError as e:
            raise CacheTierError(self.name, "set", "timeout") from e
        except Exception as e:
            raise CacheTierError(self.name, "set", str(e)) from e

    async def shutdown(self) -> None:
        await self._client.close()


class MemoryCacheBackend(CacheBackend):
    """进程内 LRU 风格缓存（按写入顺序淘汰）。"""

    name = "memory"

    def __init__(
        self,
        max_entries: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[Any, float]] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    async def set(self, key: str, value: Any, ttl: int) -> None:
        async with self._lock:
            # 重新写入同一个 key 时视为最新插入
            self._entries.pop(key, None)
            self._entries[key] = (value, self._clock() + ttl)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    async def shutdown(self) -> None:
        async with self._lock:
            self._entries.clear()
