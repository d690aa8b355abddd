"""电台目录加载、刷新与点击。

加载顺序：缓存链（Redis -> 进程内）-> PostgreSQL 当前快照 -> 对象存储 -> 实时抓取。
刷新是单飞的：并发的刷新请求共享同一次正在进行的抓取；
跨进程由刷新锁互斥，锁被占用时返回已有目录。
"""

import asyncio

from loguru import logger

from radio_service.core.infrastructure.cache import CacheChain
from radio_service.core.infrastructure.logging import BusinessEvents
from radio_service.modules.stations.application.models import (
    CacheSource,
    LoadedCatalog,
)
from radio_service.modules.stations.application.persistence_service import (
    PersistenceWriter,
)
from radio_service.modules.stations.application.validation_service import (
    StreamValidator,
)
from radio_service.modules.stations.domain.entities import CatalogPayload, Station
from radio_service.modules.stations.domain.exceptions import (
    CatalogUnavailableError,
    RefreshInProgressError,
    StationNotFoundError,
    UpstreamFetchError,
)
from radio_service.modules.stations.domain.normalizer import (
    build_country_groups,
    payload_from_dict,
)
from radio_service.modules.stations.domain.repository import (
    CatalogFetcher,
    CatalogObjectStore,
    RefreshLock,
    StationRepository,
)


class CatalogService:
    """Station catalog application service."""

    def __init__(
        self,
        cache: CacheChain,
        fetcher: CatalogFetcher,
        writer: PersistenceWriter,
        cache_key: str,
        cache_ttl: int,
        repository: StationRepository | None = None,
        object_store: CatalogObjectStore | None = None,
        validator: StreamValidator | None = None,
        refresh_lock: RefreshLock | None = None,
    ):
        self.cache = cache
        self.fetcher = fetcher
        self.writer = writer
        self.cache_key = cache_key
        self.cache_ttl = cache_ttl
        self.repository = repository
        self.object_store = object_store
        self.validator = validator
        self.refresh_lock = refresh_lock
        self._current: CatalogPayload | None = None
        self._current_source: CacheSource | None = None
        self._refresh_task: asyncio.Task[LoadedCatalog] | None = None
        self._unlocks: set[asyncio.Task[None]] = set()

    @property
    def current(self) -> CatalogPayload | None:
        """最近一次加载或刷新得到的快照。"""
        return self._current

    @property
    def current_source(self) -> CacheSource | None:
        """最近一次加载的数据来源层。"""
        return self._current_source

    @property
    def refresh_in_progress(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    async def load(self) -> LoadedCatalog:
        """按层级加载目录，全部落空时实时抓取。

        Raises:
            CatalogUnavailableError: 所有来源都失败
        """
        stored = await self._load_stored()
        if stored is not None:
            return stored
        return await self.refresh()

    async def _load_stored(self) -> LoadedCatalog | None:
        cached = await self._load_from_cache()
        if cached is not None:
            return cached

        for source, loader in (
            ("postgres", self._load_from_postgres),
            ("object-store", self._load_from_object_store),
        ):
            payload = await loader()
            if payload is None:
                continue
            logger.info(
                f"Recovered catalog from {source} ({payload.total} stations, "
                f"fingerprint {payload.fingerprint[:12]})"
            )
            self.writer.seed(payload.fingerprint)
            await self._remember(payload, source)
            return LoadedCatalog(payload=payload, source=source)
        return None

    async def refresh(self, force: bool = False) -> LoadedCatalog:
        """从上游抓取并更新缓存，持久化与探测在后台进行。

        Args:
            force: 即使指纹未变化也写入存储
        """
        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.create_task(
                self._run_refresh(force), name="stations-refresh"
            )
            self._refresh_task = task
        return await asyncio.shield(task)

    async def _run_refresh(self, force: bool) -> LoadedCatalog:
        held = await self._acquire_lock()
        if held is False:
            return await self._serve_while_locked()

        write: asyncio.Task[bool] | None = None
        try:
            try:
                payload = await self.fetcher.fetch_catalog()
            except UpstreamFetchError as e:
                logger.error(f"Catalog refresh failed: {e.message}")
                raise CatalogUnavailableError(
                    f"Station catalog refresh failed: {e.message}"
                ) from e

            await self._seed_writer()
            await self._remember(payload, "radio-browser")
            write = self.writer.schedule(
                payload, build_country_groups(payload.stations), force
            )
            if self.validator is not None:
                self.validator.schedule(payload)
            return LoadedCatalog(payload=payload, source="radio-browser")
        finally:
            if held:
                self._unlock_after(write)

    async def _acquire_lock(self) -> bool | None:
        """尝试获取跨进程刷新锁。

        Returns:
            True 持有锁；False 其他进程正在刷新；None 未配置锁或锁服务不可用（照常刷新）
        """
        if self.refresh_lock is None:
            return None
        try:
            return await self.refresh_lock.acquire()
        except Exception as e:
            logger.warning(f"Refresh lock unavailable, refreshing without it: {e}")
            return None

    async def _serve_while_locked(self) -> LoadedCatalog:
        """其他进程正在刷新：返回已有目录而不是再次抓取上游。"""
        logger.info("Catalog refresh already running in another process")
        BusinessEvents.refresh_skipped(reason="locked")
        stored = await self._load_stored()
        if stored is not None:
            return stored
        if self._current is not None:
            return LoadedCatalog(
                payload=self._current, source=self._current_source or "memory"
            )
        raise RefreshInProgressError()

    def _unlock_after(self, write: asyncio.Task[bool] | None) -> None:
        """后台写入结束后再释放锁。"""
        task = asyncio.create_task(
            self._release_lock(write), name="stations-refresh-unlock"
        )
        self._unlocks.add(task)
        task.add_done_callback(self._unlocks.discard)

    async def _release_lock(self, write: asyncio.Task[bool] | None) -> None:
        if write is not None:
            await asyncio.gather(write, return_exceptions=True)
        if self.refresh_lock is None:
            return
        try:
            await self.refresh_lock.release()
        except Exception as e:
            logger.warning(f"Failed to release refresh lock: {e}")

    async def drain(self) -> None:
        """等待后台写入完成并释放刷新锁。"""
        await self.writer.drain()
        if self._unlocks:
            await asyncio.gather(*list(self._unlocks), return_exceptions=True)

    async def _seed_writer(self) -> None:
        """新进程首次刷新前，用数据库中的当前指纹初始化写入器。"""
        if self.writer.last_fingerprint is not None or self.repository is None:
            return
        try:
            self.writer.seed(await self.repository.current_fingerprint())
        except Exception as e:
            logger.warning(f"Failed to read current fingerprint: {e}")

    async def get_station(self, station_id: str) -> Station:
        catalog = await self.load()
        station = catalog.payload.find(station_id)
        if station is None:
            raise StationNotFoundError(station_id)
        return station

    async def record_click(self, station_id: str) -> None:
        """记录点击：累加数据库计数并尽力转发到上游。"""
        await self.get_station(station_id)

        if self.repository is not None:
            try:
                updated = await self.repository.increment_click(station_id)
                if not updated:
                    logger.debug(f"Station {station_id} has no database row yet")
            except Exception as e:
                logger.warning(f"Failed to record click for {station_id}: {e}")

        forwarded = True
        try:
            await self.fetcher.record_click(station_id)
        except Exception as e:
            forwarded = False
            logger.warning(f"Failed to forward click for {station_id}: {e}")
        BusinessEvents.station_clicked(station_id=station_id, forwarded=forwarded)

    async def _remember(self, payload: CatalogPayload, source: CacheSource) -> None:
        self._current = payload
        self._current_source = source
        await self.cache.set(self.cache_key, payload.to_json_dict(), self.cache_ttl)

    async def _load_from_cache(self) -> LoadedCatalog | None:
        value, tier = await self.cache.get_with_source(self.cache_key)
        if value is None or tier is None:
            return None

        source: CacheSource = "redis" if tier == "redis" else "memory"
        current = self._current
        if (
            current is not None
            and isinstance(value, dict)
            and value.get("fingerprint") == current.fingerprint
        ):
            self._current_source = source
            return LoadedCatalog(payload=current, source=source)

        payload = payload_from_dict(value)
        if payload is None or payload.total == 0:
            return None
        self._current = payload
        self._current_source = source
        return LoadedCatalog(payload=payload, source=source)

    async def _load_from_postgres(self) -> CatalogPayload | None:
        if self.repository is None:
            return None
        try:
            return await self.repository.load_current()
        except Exception as e:
            logger.warning(f"Failed to load catalog from postgres: {e}")
            return None

    async def _load_from_object_store(self) -> CatalogPayload | None:
        if self.object_store is None:
            return None
        try:
            return await self.object_store.load_catalog()
        except Exception as e:
            logger.warning(f"Failed to load catalog from object store: {e}")
            return None

    async def shutdown(self) -> None:
        task = self._refresh_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await self.drain()
        if self.validator is not None:
            await self.validator.shutdown()
