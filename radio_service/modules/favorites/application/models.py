"""Favorites application models."""

from typing import Any

from pydantic import BaseModel

from radio_service.modules.favorites.domain.entities import FavoriteStation


class FavoriteItem(BaseModel):
    slot: int
    saved_at: int
    station: FavoriteStation

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "slot": self.slot,
            "savedAt": self.saved_at,
            "station": self.station.model_dump(mode="json", by_alias=True),
        }


class FavoritesView(BaseModel):
    """收藏夹读取结果（只包含当前目录中仍存在的电台）。"""

    max_slots: int
    items: list[FavoriteItem]

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "meta": {"maxSlots": self.max_slots},
            "items": [item.to_json_dict() for item in self.items],
        }
