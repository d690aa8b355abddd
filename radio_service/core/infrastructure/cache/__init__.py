"""分层缓存。"""

from radio_service.core.infrastructure.cache.backends import (
    CacheBackend,
    CacheTierError,
    MemoryCacheBackend,
    RedisCacheBackend,
)
from radio_service.core.infrastructure.cache.chain import CacheChain

__all__ = [
    "CacheBackend",
    "CacheChain",
    "CacheTierError",
    "MemoryCacheBackend",
    "RedisCacheBackend",
]
