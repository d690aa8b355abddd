"""Station application data models."""

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from radio_service.modules.stations.domain.entities import CatalogPayload

CacheSource = Literal["redis", "memory", "postgres", "object-store", "radio-browser"]


@dataclass(frozen=True)
class LoadedCatalog:
    """目录快照及其来源层。"""

    payload: CatalogPayload
    source: CacheSource


class StationQuery(BaseModel):
    """列表查询参数（格式已在接口层校验）。"""

    limit: str | None = None
    offset: int | None = Field(default=None, ge=0)
    page: int | None = Field(default=None, ge=1)
    language: str | None = None
    country: str | None = None
    tag: str | None = None
    genre: str | None = None
    search: str | None = None


class StationListMeta(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total: int
    filtered: int
    matches: int
    has_more: bool
    page: int
    limit: int
    max_limit: int
    requested_limit: int | str | None
    offset: int
    cache_source: CacheSource
    origin: str | None
    updated_at: str
    countries: list[str]
    genres: list[str]


class StationListResult(BaseModel):
    meta: StationListMeta
    items: list[dict[str, Any]]

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
