"""Redis Key 命名规范。

Redis 用于：
- 电台目录缓存（分布式缓存层）
- 收藏夹文档
- 流地址探测结果缓存
- 刷新任务锁
"""

from radio_service.core.config import settings


class RedisKeys:
    """Redis Key 命名空间管理。"""

    # 收藏夹
    # radio:favorites:client:{session}
    FAVORITES_PREFIX = "radio:favorites"

    # 锁
    # lock:{resource}
    LOCK_PREFIX = "lock"

    # 刷新锁资源名
    STATIONS_REFRESH_RESOURCE = "radio:stations:refresh"

    @classmethod
    def stations_catalog(cls) -> str:
        """电台目录缓存 key。"""
        return settings.STATIONS_CACHE_KEY

    @classmethod
    def stream_validation(cls) -> str:
        """流地址探测结果 Hash key。"""
        return settings.STREAM_VALIDATION_CACHE_KEY

    @classmethod
    def favorites(cls, session: str) -> str:
        """生成收藏夹 key。

        Args:
            session: 客户端收藏会话 ID

        Returns:
            格式化的 Redis key
        """
        return f"{cls.FAVORITES_PREFIX}:client:{session}"

    @classmethod
    def lock(cls, resource: str) -> str:
        """生成锁 key。"""
        return f"{cls.LOCK_PREFIX}:{resource}"
