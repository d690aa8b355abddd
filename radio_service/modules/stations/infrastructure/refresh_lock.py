"""目录刷新的 Redis 分布式锁（SET NX + 过期时间）。"""

from radio_service.core.infrastructure.redis import RedisClient, RedisKeys
from radio_service.modules.stations.domain.repository import RefreshLock

REFRESH_LOCK_TTL_SECONDS = 15 * 60


class RedisRefreshLock(RefreshLock):
    """持有期间覆盖抓取与后台写入；进程崩溃时靠 TTL 释放。"""

    def __init__(
        self,
        client: RedisClient,
        resource: str = RedisKeys.STATIONS_REFRESH_RESOURCE,
        ttl_seconds: int = REFRESH_LOCK_TTL_SECONDS,
    ):
        self._client = client
        self.resource = resource
        self.ttl_seconds = ttl_seconds

    async def acquire(self) -> bool:
        return await self._client.acquire_lock(self.resource, ttl=self.ttl_seconds)

    async def release(self) -> None:
        await self._client.release_lock(self.resource)
