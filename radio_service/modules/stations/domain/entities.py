"""Station domain entities.

JSON 表示统一使用 camelCase（与对象存储、Redis 缓存、API 响应一致），
Python 侧字段保持 snake_case。
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

STATIONS_SCHEMA_VERSION = 3


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Coordinates(CamelModel):
    lat: float
    lon: float


class Station(CamelModel):
    """单个电台（一次目录快照内 id 唯一）。"""

    id: str
    name: str
    stream_url: str
    homepage: str | None = None
    favicon: str | None = None
    country: str | None = None
    country_code: str | None = Field(default=None, min_length=2, max_length=3)
    state: str | None = None
    languages: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    coordinates: Coordinates | None = None
    bitrate: int | None = None
    codec: str | None = None
    hls: bool = False
    is_online: bool = True
    last_checked_at: str | None = None
    last_changed_at: str | None = None
    click_count: int = 0
    click_trend: int = 0
    votes: int = 0


class RequestDescriptor(CamelModel):
    """一次上游请求的诊断记录。"""

    url: str
    country: str | None = None
    page: int | None = None
    status: str = "ok"
    count: int = 0
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status != "ok"


class CatalogPayload(CamelModel):
    """一次抓取得到的完整目录快照，持久化后不可变。"""

    schema_version: int = STATIONS_SCHEMA_VERSION
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    source: str | None = None
    requests: list[RequestDescriptor] = Field(default_factory=list)
    total: int = 0
    fingerprint: str
    stations: list[Station] = Field(default_factory=list)

    @property
    def failed_requests(self) -> int:
        return sum(1 for request in self.requests if request.failed)

    def find(self, station_id: str) -> Station | None:
        for station in self.stations:
            if station.id == station_id:
                return station
        return None

    def metadata_dict(self) -> dict[str, Any]:
        """不含 stations 的元数据表示。"""
        return self.model_dump(mode="json", by_alias=True, exclude={"stations"})


class CountryGroup(BaseModel):
    """按国家划分的电台分组（派生数据，不单独持久化）。"""

    slug: str
    name: str | None = None
    code: str | None = None
    stations: list[Station] = Field(default_factory=list)

    def to_shard_dict(self) -> dict[str, Any]:
        return {
            "country": {"name": self.name, "code": self.code},
            "total": len(self.stations),
            "stations": [station.to_json_dict() for station in self.stations],
        }


class StreamValidationResult(CamelModel):
    """流地址探测结果，在 checked_at + ttl 之前有效。"""

    stream_url: str
    is_online: bool
    checked_at: datetime

    def is_fresh(self, ttl_seconds: int, now: datetime | None = None) -> bool:
        current = now or datetime.now(UTC)
        return (current - self.checked_at).total_seconds() < ttl_seconds
