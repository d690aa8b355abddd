"""Station module infrastructure dependencies.

目录服务、持久化写入器与探测器都是进程级单例（指纹状态与单飞刷新依赖于此），
由 StationsContainer 延迟构建，应用关闭时统一释放。
"""

from loguru import logger

from radio_service.core.config import settings
from radio_service.core.infrastructure.cache import (
    CacheChain,
    MemoryCacheBackend,
    RedisCacheBackend,
)
from radio_service.core.infrastructure.redis import RedisClient, RedisKeys, redis_client
from radio_service.modules.stations.application.catalog_service import CatalogService
from radio_service.modules.stations.application.persistence_service import (
    PersistenceWriter,
)
from radio_service.modules.stations.application.query_service import (
    StationQueryService,
)
from radio_service.modules.stations.application.validation_service import (
    StreamValidator,
)
from radio_service.modules.stations.infrastructure.object_store import S3ObjectStore
from radio_service.modules.stations.infrastructure.radio_browser import (
    RadioBrowserFetcher,
)
from radio_service.modules.stations.infrastructure.refresh_lock import (
    RedisRefreshLock,
)
from radio_service.modules.stations.infrastructure.repositories import (
    PostgreSQLStationRepository,
)
from radio_service.modules.stations.infrastructure.stream_probe import HttpStreamProbe
from radio_service.modules.stations.infrastructure.stream_proxy import HttpStreamRelay
from radio_service.modules.stations.infrastructure.validation_cache import (
    RedisValidationResultStore,
)


class StationsContainer:
    """按配置组装 stations 模块的单例。"""

    def __init__(self, client: RedisClient, background_validation: bool = True):
        """
        Args:
            client: Redis 客户端
            background_validation: 刷新后是否在本进程内探测流地址（worker 中改为分发到 q_validate）
        """
        self._redis = client
        self.background_validation = background_validation
        self._catalog: CatalogService | None = None
        self._validator: StreamValidator | None = None
        self._probe: HttpStreamProbe | None = None
        self._cache: CacheChain | None = None
        self._query: StationQueryService | None = None
        self._relay: HttpStreamRelay | None = None

    @property
    def cache(self) -> CacheChain:
        if self._cache is None:
            self._cache = CacheChain(
                distributed=RedisCacheBackend(
                    self._redis, settings.CACHE_OPERATION_TIMEOUT_MS
                ),
                memory=MemoryCacheBackend(settings.MEMORY_CACHE_MAX_ENTRIES),
                memory_ttl=settings.MEMORY_CACHE_TTL,
            )
        return self._cache

    @property
    def validator(self) -> StreamValidator:
        if self._validator is None:
            self._probe = HttpStreamProbe.from_settings()
            self._validator = StreamValidator(
                probe=self._probe,
                store=RedisValidationResultStore(
                    self._redis,
                    key=RedisKeys.stream_validation(),
                    ttl_seconds=settings.STREAM_VALIDATION_CACHE_TTL,
                    timeout_ms=settings.CACHE_OPERATION_TIMEOUT_MS,
                ),
                concurrency=settings.STREAM_VALIDATION_CONCURRENCY,
                timeout_ms=settings.STREAM_VALIDATION_TIMEOUT_MS,
                enabled=settings.STREAM_VALIDATION_ENABLED,
            )
        return self._validator

    @property
    def catalog(self) -> CatalogService:
        if self._catalog is None:
            repository = PostgreSQLStationRepository()
            object_store = S3ObjectStore.from_settings()
            self._catalog = CatalogService(
                cache=self.cache,
                fetcher=RadioBrowserFetcher.from_settings(),
                writer=PersistenceWriter(
                    repository=repository,
                    object_store=object_store,
                    shard_concurrency=settings.S3_WRITE_CONCURRENCY,
                ),
                cache_key=RedisKeys.stations_catalog(),
                cache_ttl=settings.STATIONS_CACHE_TTL,
                repository=repository,
                object_store=object_store,
                validator=self.validator if self.background_validation else None,
                refresh_lock=RedisRefreshLock(self._redis),
            )
        return self._catalog

    @property
    def query(self) -> StationQueryService:
        if self._query is None:
            self._query = StationQueryService(
                default_limit=settings.API_DEFAULT_PAGE_SIZE,
                max_limit=settings.API_MAX_PAGE_SIZE,
            )
        return self._query

    @property
    def relay(self) -> HttpStreamRelay:
        if self._relay is None:
            self._relay = HttpStreamRelay.from_settings()
        return self._relay

    async def warm_up(self) -> None:
        """启动时预加载目录，失败不阻止服务启动。"""
        try:
            catalog = await self.catalog.load()
            logger.info(
                f"Catalog ready: {catalog.payload.total} stations from {catalog.source}"
            )
        except Exception as e:
            logger.warning(f"Catalog warm-up failed: {e}")

    async def shutdown(self) -> None:
        if self._catalog is not None:
            await self._catalog.shutdown()
        if self._validator is not None and (
            self._catalog is None or self._catalog.validator is None
        ):
            await self._validator.shutdown()
        if self._probe is not None:
            await self._probe.aclose()
        if self._cache is not None:
            await self._cache.shutdown()


stations_container = StationsContainer(redis_client)


async def get_catalog_service() -> CatalogService:
    return stations_container.catalog


async def get_stream_validator() -> StreamValidator | None:
    return stations_container.validator


async def get_stream_relay() -> HttpStreamRelay:
    return stations_container.relay


async def get_query_service() -> StationQueryService:
    return stations_container.query
