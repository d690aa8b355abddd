"""
pytest 配置和共享 fixtures。

所有单元测试都不依赖外部服务：PostgreSQL、Redis、S3 与 radio-browser
均由内存实现或 httpx.MockTransport 替代。

使用方法：
    # 运行所有测试
    pytest

    # 运行带覆盖率
    pytest --cov=radio_service --cov-report=html
"""

import asyncio
import json
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from radio_service.core.config import Settings
from radio_service.core.infrastructure.cache import CacheChain, MemoryCacheBackend
from radio_service.modules.stations.domain.entities import (
    CatalogPayload,
    CountryGroup,
    Station,
    StreamValidationResult,
)
from radio_service.modules.stations.domain.normalizer import (
    build_payload,
    payload_from_dict,
)
from radio_service.modules.stations.domain.repository import (
    CatalogFetcher,
    CatalogObjectStore,
    StationRepository,
    StreamProbe,
    ValidationResultStore,
)

# ============================================
# 配置 Fixtures
# ============================================


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def test_settings() -> Settings:
    """测试环境配置。"""
    return Settings(
        _env_file=None,
        ENVIRONMENT="local",
        REDIS_URL="redis://localhost:6379/1",
        ALLOW_INSECURE_TRANSPORT=True,
        STATIONS_REFRESH_TOKEN="test-refresh-token",
        MINIO_ENDPOINT="http://localhost:9000",
        MINIO_ACCESS_KEY="minio",
        MINIO_SECRET_KEY="minio-secret",
        MINIO_BUCKET="radio",
    )


# ============================================
# 领域对象 Fixtures
# ============================================


@pytest.fixture
def make_station() -> Callable[..., Station]:
    """电台工厂：只需 id，其余字段有合理默认值。"""

    def factory(station_id: str, **overrides: Any) -> Station:
        data: dict[str, Any] = {
            "id": station_id,
            "name": f"Station {station_id}",
            "stream_url": f"https://streams.example.com/{station_id}.mp3",
            "country": "Germany",
            "country_code": "DE",
            "languages": ["german"],
            "tags": ["pop"],
            "click_count": 0,
        }
        data.update(overrides)
        return Station(**data)

    return factory


@pytest.fixture
def make_payload() -> Callable[..., CatalogPayload]:
    def factory(stations: list[Station], **kwargs: Any) -> CatalogPayload:
        kwargs.setdefault("updated_at", datetime(2024, 5, 1, tzinfo=UTC))
        kwargs.setdefault("source", "https://de1.api.radio-browser.info")
        return build_payload(stations, **kwargs)

    return factory


@pytest.fixture
def sample_payload(make_station, make_payload) -> CatalogPayload:
    """三个国家、五个电台的小目录。"""
    return make_payload(
        [
            make_station("de-1", click_count=50, tags=["pop", "rock"]),
            make_station("de-2", click_count=10, tags=["jazz"]),
            make_station(
                "fr-1",
                country="France",
                country_code="FR",
                languages=["french"],
                tags=["news"],
                click_count=30,
            ),
            make_station(
                "us-1",
                country="United States",
                country_code="US",
                languages=["english"],
                tags=["rock"],
                click_count=30,
            ),
            make_station(
                "xx-1",
                country=None,
                country_code=None,
                languages=[],
                tags=[],
                click_count=1,
            ),
        ]
    )


# ============================================
# 内存实现
# ============================================


class InMemoryStationRepository(StationRepository):
    """追加式 payload 历史 + 单一当前指针。"""

    def __init__(self) -> None:
        self.payloads: dict[str, CatalogPayload] = {}
        self.payload_ids: dict[str, int] = {}
        self.current: str | None = None
        self.saves = 0
        self.clicks: dict[str, int] = {}
        self.fail_with: Exception | None = None

    async def load_current(self) -> CatalogPayload | None:
        if self.current is None:
            return None
        return self.payloads[self.current]

    async def current_fingerprint(self) -> str | None:
        return self.current

    async def save_payload(self, payload: CatalogPayload) -> int:
        if self.fail_with is not None:
            raise self.fail_with
        self.saves += 1
        payload_id = self.payload_ids.setdefault(
            payload.fingerprint, len(self.payload_ids) + 1
        )
        self.payloads[payload.fingerprint] = payload
        self.current = payload.fingerprint
        return payload_id

    async def increment_click(self, station_id: str) -> bool:
        payload = await self.load_current()
        if payload is None or payload.find(station_id) is None:
            return False
        self.clicks[station_id] = self.clicks.get(station_id, 0) + 1
        return True


class InMemoryObjectStore(CatalogObjectStore):
    def __init__(self) -> None:
        self.objects: dict[str, dict[str, Any]] = {}
        self.fail_with: Exception | None = None
        self.failing_shards: set[str] = set()
        self.puts = 0

    async def load_catalog(self) -> CatalogPayload | None:
        data = self.objects.get("stations.json")
        return payload_from_dict(data) if data is not None else None

    async def put_catalog(self, payload: CatalogPayload) -> None:
        self.puts += 1
        if self.fail_with is not None:
            raise self.fail_with
        self.objects["stations.json"] = payload.to_json_dict()

    async def put_metadata(self, payload: CatalogPayload) -> None:
        self.puts += 1
        if self.fail_with is not None:
            raise self.fail_with
        self.objects["stations-metadata.json"] = payload.metadata_dict()

    async def put_country_shard(self, group: CountryGroup) -> None:
        self.puts += 1
        if group.slug in self.failing_shards:
            raise OSError(f"shard {group.slug} rejected")
        self.objects[f"stations/by-country/{group.slug}.json"] = group.to_shard_dict()


class InMemoryValidationStore(ValidationResultStore):
    def __init__(self, ttl_seconds: int = 900) -> None:
        self.ttl_seconds = ttl_seconds
        self.results: dict[str, StreamValidationResult] = {}

    async def get_many(
        self, stream_urls: Sequence[str]
    ) -> dict[str, StreamValidationResult]:
        now = datetime.now(UTC)
        return {
            url: self.results[url]
            for url in stream_urls
            if url in self.results and self.results[url].is_fresh(self.ttl_seconds, now)
        }

    async def save_many(self, results: Sequence[StreamValidationResult]) -> None:
        for result in results:
            self.results[result.stream_url] = result


class StaticFetcher(CatalogFetcher):
    """按顺序返回预置结果的上游抓取器。"""

    def __init__(self, *results: CatalogPayload | Exception, delay: float = 0):
        self.results = list(results)
        self.calls = 0
        self.clicks: list[str] = []
        self.delay = delay

    async def fetch_catalog(self) -> CatalogPayload:
        index = min(self.calls, len(self.results) - 1)
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.results[index]
        if isinstance(result, Exception):
            raise result
        return result

    async def record_click(self, station_id: str) -> None:
        self.clicks.append(station_id)


class ScriptedProbe(StreamProbe):
    """按 URL 返回预置结果；值为异常时抛出，为 None 时挂起直到超时。"""

    def __init__(self, outcomes: dict[str, bool | Exception | None] | None = None):
        self.outcomes = outcomes or {}
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0

    async def probe(self, stream_url: str) -> bool:
        self.calls.append(stream_url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0.01)
            outcome = self.outcomes.get(stream_url, True)
            if outcome is None:
                await asyncio.sleep(3600)
            if isinstance(outcome, Exception):
                raise outcome
            return bool(outcome)
        finally:
            self.active -= 1


@pytest.fixture
def station_repository() -> InMemoryStationRepository:
    return InMemoryStationRepository()


@pytest.fixture
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def validation_store() -> InMemoryValidationStore:
    return InMemoryValidationStore()


@pytest.fixture
def memory_cache() -> CacheChain:
    """只有进程内层的缓存链。"""
    return CacheChain(
        distributed=None,
        memory=MemoryCacheBackend(max_entries=16),
        memory_ttl=300,
    )


@pytest.fixture
def static_fetcher_cls() -> type[StaticFetcher]:
    return StaticFetcher


@pytest.fixture
def scripted_probe_cls() -> type[ScriptedProbe]:
    return ScriptedProbe


# ============================================
# Redis Fixtures
# ============================================


class FakeRedisClient:
    """RedisClient 的内存替身（只实现测试用到的操作）。"""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False) -> bool:
        if nx and key in self.values:
            return False
        self.values[key] = value
        if ex is not None:
            self.ttls[key] = int(ex)
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            removed += int(self.values.pop(key, None) is not None)
            removed += int(self.hashes.pop(key, None) is not None)
        return removed

    async def expire(self, key: str, seconds: int) -> bool:
        if key not in self.values and key not in self.hashes:
            return False
        self.ttls[key] = seconds
        return True

    async def get_json(self, key: str) -> Any | None:
        value = await self.get(key)
        return None if value is None else json.loads(value)

    async def set_json(self, key: str, value: Any, ex: int | None = None) -> bool:
        return await self.set(key, json.dumps(value), ex=ex)

    async def hmget(self, key: str, fields: list[str]) -> list[str | None]:
        bucket = self.hashes.get(key, {})
        return [bucket.get(field) for field in fields]

    async def hset_many(self, key: str, mapping: dict[str, str]) -> int:
        self.hashes.setdefault(key, {}).update(mapping)
        return len(mapping)

    async def acquire_lock(self, resource: str, ttl: int = 60) -> bool:
        return await self.set(f"lock:{resource}", "1", ex=ttl, nx=True)

    async def release_lock(self, resource: str) -> bool:
        return await self.delete(f"lock:{resource}") > 0

    async def close(self) -> None:
        return None


@pytest.fixture
def fake_redis() -> FakeRedisClient:
    return FakeRedisClient()


@pytest.fixture
def mock_redis_client() -> MagicMock:
    """Mock Redis 客户端。"""
    from radio_service.core.infrastructure.redis.client import RedisClient

    client = MagicMock(spec=RedisClient)
    client.ping = AsyncMock(return_value=True)
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.get_json = AsyncMock(return_value=None)
    client.set_json = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.close = AsyncMock()
    return client
