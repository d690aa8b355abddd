"""流地址在线探测。"""

import asyncio
import time
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from loguru import logger

from radio_service.core.application.concurrency import bounded_gather
from radio_service.core.infrastructure.logging import BusinessEvents
from radio_service.modules.stations.domain.entities import (
    CatalogPayload,
    StreamValidationResult,
)
from radio_service.modules.stations.domain.exceptions import ValidationProbeError
from radio_service.modules.stations.domain.repository import (
    StreamProbe,
    ValidationResultStore,
)


class StreamValidator:
    """有界并发的探测器，结果写入独立缓存。

    单个地址超时、出错或返回非 2xx 都记为离线，不会向上抛出。
    """

    def __init__(
        self,
        probe: StreamProbe,
        store: ValidationResultStore,
        concurrency: int = 8,
        timeout_ms: int = 5000,
        enabled: bool = True,
        batch_size: int = 200,
    ):
        self.probe = probe
        self.store = store
        self.concurrency = max(1, concurrency)
        self.batch_size = max(1, batch_size)
        self.timeout = timeout_ms / 1000
        self.enabled = enabled
        self._task: asyncio.Task[dict[str, StreamValidationResult]] | None = None

    async def check(self, stream_url: str) -> StreamValidationResult:
        try:
            online = await asyncio.wait_for(
                self.probe.probe(stream_url), timeout=self.timeout
            )
        except TimeoutError:
            online = False
        except ValidationProbeError as e:
            logger.debug(str(e))
            online = False
        except Exception as e:
            logger.warning(f"Unexpected error probing {stream_url}: {e}")
            online = False
        return StreamValidationResult(
            stream_url=stream_url,
            is_online=bool(online),
            checked_at=datetime.now(UTC),
        )

    async def validate(
        self, stream_urls: Iterable[str]
    ) -> dict[str, StreamValidationResult]:
        """返回给定地址（去重）的探测结果。

        有效期内已有缓存结果的地址不会重新探测；其余地址按批探测，
        每批完成后立即写入缓存，中途被取消时已完成的批次不会丢失。
        """
        cached, fresh = await self._validate(stream_urls)
        return {**cached, **fresh}

    async def _validate(
        self, stream_urls: Iterable[str]
    ) -> tuple[dict[str, StreamValidationResult], dict[str, StreamValidationResult]]:
        urls = list(dict.fromkeys(url for url in stream_urls if url))
        if not urls:
            return {}, {}
        cached = await self.store.get_many(urls)
        pending = [url for url in urls if url not in cached]

        fresh: dict[str, StreamValidationResult] = {}
        for start in range(0, len(pending), self.batch_size):
            batch = pending[start : start + self.batch_size]
            results = await bounded_gather(batch, self.check, self.concurrency)
            await self.store.save_many(results)
            fresh.update((result.stream_url, result) for result in results)
        return cached, fresh

    async def validate_catalog(
        self, payload: CatalogPayload
    ) -> dict[str, StreamValidationResult]:
        """探测目录中的所有流地址（已缓存的直接复用）。"""
        started = time.monotonic()
        cached, fresh = await self._validate(
            station.stream_url for station in payload.stations
        )

        BusinessEvents.stream_validation_completed(
            checked=len(fresh),
            online=sum(1 for result in fresh.values() if result.is_online),
            cached=len(cached),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return {**cached, **fresh}

    def schedule(
        self, payload: CatalogPayload
    ) -> asyncio.Task[dict[str, StreamValidationResult]] | None:
        """后台执行一轮目录探测；已有一轮在进行时不重复启动。"""
        if not self.enabled:
            return None
        if self._task is not None and not self._task.done():
            return self._task
        self._task = asyncio.create_task(
            self.validate_catalog(payload), name="stream-validation"
        )
        self._task.add_done_callback(self._on_done)
        return self._task

    @staticmethod
    def _on_done(task: asyncio.Task[dict[str, StreamValidationResult]]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.opt(exception=error).error(f"Stream validation failed: {error}")

    async def cached_results(
        self, stream_urls: Sequence[str]
    ) -> dict[str, StreamValidationResult]:
        return await self.store.get_many(stream_urls)

    async def is_offline(self, stream_url: str) -> bool:
        """仅当存在有效缓存且结果为离线时返回 True。"""
        result = (await self.store.get_many([stream_url])).get(stream_url)
        return result is not None and not result.is_online

    async def drain(self) -> None:
        """等待进行中的探测完成。"""
        if self._task is not None and not self._task.done():
            await asyncio.gather(self._task, return_exceptions=True)

    async def shutdown(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
