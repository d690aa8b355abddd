"""分层缓存：Redis 优先，进程内兜底。"""

from typing import Any

from loguru import logger

from radio_service.core.infrastructure.cache.backends import (
    CacheTierError,
    MemoryCacheBackend,
    RedisCacheBackend,
)
from radio_service.core.infrastructure.logging import BusinessEvents


class CacheChain:
    """固定顺序的缓存链。

    - set: 先写进程内层（不会失败），再尽力写 Redis
    - get: 先读 Redis，出错或未命中时回退到进程内层
    """

    def __init__(
        self,
        distributed: RedisCacheBackend | None,
        memory: MemoryCacheBackend,
        memory_ttl: int,
    ):
        self._distributed = distributed
        self._memory = memory
        self._memory_ttl = memory_ttl

    async def get(self, key: str) -> Any | None:
        value, _ = await self.get_with_source(key)
        return value

    async def get_with_source(self, key: str) -> tuple[Any | None, str | None]:
        """读取缓存值并返回命中的层名称（redis / memory）。"""
        if self._distributed is not None:
            try:
                value = await self._distributed.get(key)
                if value is not None:
                    return value, self._distributed.name
            except CacheTierError as e:
                BusinessEvents.cache_tier_degraded(
                    tier=e.tier, operation=e.operation, reason=e.reason, key=key
                )

        value = await self._memory.get(key)
        if value is not None:
            return value, self._memory.name
        return None, None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        await self._memory.set(key, value, min(ttl, self._memory_ttl))

        if self._distributed is None:
            return
        try:
            await self._distributed.set(key, value, ttl)
        except CacheTierError as e:
            BusinessEvents.cache_tier_degraded(
                tier=e.tier, operation=e.operation, reason=e.reason, key=key
            )

    async def shutdown(self) -> None:
        for backend in (self._distributed, self._memory):
            if backend is None:
                continue
            try:
                await backend.shutdown()
            except Exception as e:
                logger.warning(f"Failed to shut down {backend.name} cache: {e}")
