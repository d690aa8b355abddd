"""电台目录 Celery 任务。

包含：
- 定时刷新目录（与 API 刷新走同一条流水线，共用 Redis 刷新锁）
- 流地址探测（刷新后按批分发到 q_validate）
"""

import asyncio

from celery import shared_task
from kombu.exceptions import OperationalError
from loguru import logger

from radio_service.core.config import settings
from radio_service.core.infrastructure.celery.queues import Queues
from radio_service.core.infrastructure.logging import get_business_logger
from radio_service.core.infrastructure.redis.client import RedisUnavailableError

VALIDATION_BATCH_SIZE = 500


@shared_task(
    name="radio_service.modules.stations.tasks.refresh_stations",
    bind=True,
    max_retries=0,  # 定时任务不重试，等待下一轮
    queue=Queues.INGEST,
)
def refresh_stations(_self: object, force: bool = False) -> None:
    """刷新电台目录。

    由 Celery Beat 按 STATIONS_REFRESH_INTERVAL_SEC 调用。
    刷新锁被其他进程（API 或另一个 worker）持有时跳过本轮。
    """
    asyncio.run(_refresh_stations_async(force))


async def _refresh_stations_async(force: bool) -> None:
    from radio_service.core.infrastructure.redis import get_async_redis_client
    from radio_service.modules.stations.domain.exceptions import (
        RefreshInProgressError,
    )
    from radio_service.modules.stations.infrastructure.dependencies import (
        StationsContainer,
    )

    try:
        async with get_async_redis_client() as client:
            container = StationsContainer(client, background_validation=False)
            try:
                try:
                    loaded = await container.catalog.refresh(force=force)
                except RefreshInProgressError:
                    return
                # 锁被占用时返回的是已有目录，不重复探测
                if loaded.source != "radio-browser":
                    return

                await container.catalog.drain()
                logger.info(
                    f"Scheduled refresh finished: {loaded.payload.total} stations, "
                    f"fingerprint {loaded.payload.fingerprint[:12]}"
                )
                if settings.STREAM_VALIDATION_ENABLED:
                    dispatch_validation(
                        [station.stream_url for station in loaded.payload.stations]
                    )
            finally:
                await container.shutdown()
    except RedisUnavailableError as e:
        logger.warning(f"Redis unavailable, skipping stations refresh: {e}")


def dispatch_validation(stream_urls: list[str]) -> int:
    """把流地址按批投递到 q_validate。

    Returns:
        成功投递的批次数
    """
    urls = list(dict.fromkeys(url for url in stream_urls if url))
    dispatched = 0
    for start in range(0, len(urls), VALIDATION_BATCH_SIZE):
        batch = urls[start : start + VALIDATION_BATCH_SIZE]
        try:
            validate_streams.delay(stream_urls=batch)
        except OperationalError as e:
            logger.exception(f"Failed to enqueue stream validation batch: {e}")
            break
        dispatched += 1

    get_business_logger().info(
        "stream_validation_dispatched",
        urls=len(urls),
        batches=dispatched,
    )
    return dispatched


@shared_task(
    name="radio_service.modules.stations.tasks.validate_streams",
    bind=True,
    max_retries=0,
    queue=Queues.VALIDATE,
)
def validate_streams(_self: object, stream_urls: list[str]) -> int:
    """探测给定的流地址并写入探测缓存（有效期内的结果直接复用）。

    Returns:
        在线地址数量
    """
    return asyncio.run(_validate_streams_async(stream_urls))


async def _validate_streams_async(stream_urls: list[str]) -> int:
    from radio_service.core.infrastructure.redis import get_async_redis_client
    from radio_service.modules.stations.infrastructure.dependencies import (
        StationsContainer,
    )

    async with get_async_redis_client() as client:
        container = StationsContainer(client, background_validation=False)
        try:
            results = await container.validator.validate(stream_urls)
        finally:
            await container.shutdown()
    online = sum(1 for result in results.values() if result.is_online)
    logger.info(f"Validated {len(results)} streams, {online} online")
    return online
