"""Favorites API schemas."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from radio_service.modules.favorites.domain.entities import FavoriteStation


class _CamelSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PutFavoriteRequest(BaseModel):
    slot: int | None = Field(None, ge=0, description="目标槽位，省略时使用最小空闲槽位")


class FavoritesMeta(_CamelSchema):
    max_slots: int


class FavoriteItemResponse(_CamelSchema):
    slot: int
    saved_at: int
    station: FavoriteStation


class FavoritesResponse(BaseModel):
    meta: FavoritesMeta
    items: list[FavoriteItemResponse]
