"""流地址探测结果缓存（Redis Hash，field 为流地址）。"""

import asyncio
import json
from collections.abc import Sequence
from datetime import UTC, datetime

from loguru import logger

from radio_service.core.infrastructure.logging import BusinessEvents
from radio_service.core.infrastructure.redis import RedisClient
from radio_service.modules.stations.domain.entities import StreamValidationResult
from radio_service.modules.stations.domain.repository import ValidationResultStore


def _decode(stream_url: str, raw: str | None) -> StreamValidationResult | None:
    if not raw:
        return None
    try:
        data = json.loads(raw)
        return StreamValidationResult(
            stream_url=stream_url,
            is_online=bool(data["isOnline"]),
            checked_at=datetime.fromisoformat(data["checkedAt"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.debug(f"Ignoring malformed validation entry for {stream_url}: {e}")
        return None


def _encode(result: StreamValidationResult) -> str:
    return json.dumps(
        {"isOnline": result.is_online, "checkedAt": result.checked_at.isoformat()}
    )


class RedisValidationResultStore(ValidationResultStore):
    """读写都带超时，Redis 故障时视为无缓存。"""

    def __init__(
        self,
        client: RedisClient,
        key: str,
        ttl_seconds: int,
        timeout_ms: int,
    ):
        self._client = client
        self.key = key
        self.ttl_seconds = ttl_seconds
        self._timeout = timeout_ms / 1000

    async def get_many(
        self, stream_urls: Sequence[str]
    ) -> dict[str, StreamValidationResult]:
        urls = list(dict.fromkeys(stream_urls))
        if not urls:
            return {}
        try:
            values = await asyncio.wait_for(
                self._client.hmget(self.key, urls), timeout=self._timeout
            )
        except Exception as e:
            BusinessEvents.cache_tier_degraded(
                tier="redis", operation="validation_get", reason=str(e) or "timeout"
            )
            return {}

        now = datetime.now(UTC)
        results: dict[str, StreamValidationResult] = {}
        for url, raw in zip(urls, values, strict=False):
            result = _decode(url, raw)
            if result is not None and result.is_fresh(self.ttl_seconds, now):
                results[url] = result
        return results

    async def save_many(self, results: Sequence[StreamValidationResult]) -> None:
        if not results:
            return
        mapping = {result.stream_url: _encode(result) for result in results}
        try:
            await asyncio.wait_for(
                self._client.hset_many(self.key, mapping), timeout=self._timeout
            )
            await asyncio.wait_for(
                self._client.expire(self.key, self.ttl_seconds), timeout=self._timeout
            )
        except Exception as e:
            BusinessEvents.cache_tier_degraded(
                tier="redis", operation="validation_set", reason=str(e) or "timeout"
            )
