"""目录持久化：对象存储与关系型存储两条独立写入路径。"""

import asyncio
from collections.abc import Sequence

from loguru import logger

from radio_service.core.application.concurrency import bounded_gather
from radio_service.core.infrastructure.logging import BusinessEvents
from radio_service.modules.stations.domain.entities import (
    CatalogPayload,
    CountryGroup,
)
from radio_service.modules.stations.domain.repository import (
    CatalogObjectStore,
    StationRepository,
)

OBJECT_STORE_TARGET = "object-store"
POSTGRES_TARGET = "postgres"


class PersistenceWriter:
    """把目录快照写入两个存储。

    last_fingerprint 记录最近一次两条路径都成功写入的指纹；指纹未变化且未强制时跳过写入。
    两条路径互不回滚，任一失败只记录日志。
    """

    def __init__(
        self,
        repository: StationRepository | None,
        object_store: CatalogObjectStore | None,
        shard_concurrency: int = 5,
    ):
        self.repository = repository
        self.object_store = object_store
        self.shard_concurrency = max(1, shard_concurrency)
        self.last_fingerprint: str | None = None
        self._tasks: set[asyncio.Task[bool]] = set()
        self._lock = asyncio.Lock()

    def seed(self, fingerprint: str | None) -> None:
        """用已恢复的快照指纹初始化（进程重启后避免重复写入）。"""
        if fingerprint and self.last_fingerprint is None:
            self.last_fingerprint = fingerprint

    def should_persist(self, payload: CatalogPayload, force: bool = False) -> bool:
        return force or payload.fingerprint != self.last_fingerprint

    async def persist(
        self,
        payload: CatalogPayload,
        groups: Sequence[CountryGroup],
        force: bool = False,
    ) -> bool:
        """写入两个存储。

        同一时间只有一次写入；排队的写入在前一次完成后再比较指纹。

        Returns:
            是否实际执行了写入
        """
        async with self._lock:
            if not self.should_persist(payload, force):
                BusinessEvents.persistence_skipped(fingerprint=payload.fingerprint)
                return False

            object_ok, postgres_ok = await asyncio.gather(
                self._write_object_store(payload, groups),
                self._write_postgres(payload),
            )
            if object_ok and postgres_ok:
                self.last_fingerprint = payload.fingerprint
            return True

    def schedule(
        self,
        payload: CatalogPayload,
        groups: Sequence[CountryGroup],
        force: bool = False,
    ) -> asyncio.Task[bool]:
        """在后台执行 persist，调用方无需等待。"""
        task = asyncio.create_task(
            self.persist(payload, groups, force),
            name=f"persist-{payload.fingerprint[:12]}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[bool]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Persistence task {task.get_name()} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.opt(exception=error).error(
                f"Persistence task {task.get_name()} failed: {error}"
            )

    async def drain(self) -> None:
        """等待所有后台写入完成。"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _write_object_store(
        self, payload: CatalogPayload, groups: Sequence[CountryGroup]
    ) -> bool:
        if self.object_store is None:
            return True
        store = self.object_store
        try:
            await store.put_catalog(payload)
            await store.put_metadata(payload)
        except Exception as e:
            BusinessEvents.persistence_failed(
                target=OBJECT_STORE_TARGET,
                fingerprint=payload.fingerprint,
                error=str(e),
            )
            return False

        async def write_shard(group: CountryGroup) -> bool:
            try:
                await store.put_country_shard(group)
                return True
            except Exception as e:
                BusinessEvents.persistence_failed(
                    target=OBJECT_STORE_TARGET,
                    fingerprint=payload.fingerprint,
                    error=str(e),
                    shard=group.slug,
                )
                return False

        results = await bounded_gather(groups, write_shard, self.shard_concurrency)
        failed = results.count(False)
        BusinessEvents.catalog_persisted(
            target=OBJECT_STORE_TARGET,
            fingerprint=payload.fingerprint,
            total=payload.total,
            shards=len(results),
            failed_shards=failed,
        )
        return failed == 0

    async def _write_postgres(self, payload: CatalogPayload) -> bool:
        if self.repository is None:
            return True
        try:
            payload_id = await self.repository.save_payload(payload)
        except Exception as e:
            BusinessEvents.persistence_failed(
                target=POSTGRES_TARGET,
                fingerprint=payload.fingerprint,
                error=str(e),
            )
            return False
        BusinessEvents.catalog_persisted(
            target=POSTGRES_TARGET,
            fingerprint=payload.fingerprint,
            total=payload.total,
            payload_id=payload_id,
        )
        return True
