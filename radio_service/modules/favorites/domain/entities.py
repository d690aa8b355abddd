"""Favorites domain entities.

收藏夹按会话存储为一个文档：固定数量的槽位，每个槽位最多一个电台。
文档内保存电台快照，但读取时总是以当前目录为准，目录中已不存在的电台被静默忽略。
"""

import re
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from radio_service.core.domain.exceptions import CapacityError, ValidationError
from radio_service.modules.stations.domain.entities import Station

FAVORITES_DOCUMENT_VERSION = 3
SNAPSHOT_MAX_TAGS = 12
STATION_ID_RE = re.compile(r"^[A-Za-z0-9:_-]{3,128}$")


def sanitize_station_id(value: str) -> str | None:
    """去除首尾空白并校验电台 ID，非法时返回 None。"""
    trimmed = value.strip()
    if STATION_ID_RE.match(trimmed):
        return trimmed
    return None


def require_station_id(value: str) -> str:
    station_id = sanitize_station_id(value)
    if station_id is None:
        raise ValidationError(f"Invalid station id: {value!r}")
    return station_id


def now_millis() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


class FavoriteStation(BaseModel):
    """面向客户端的电台快照。"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str
    name: str
    stream_url: str
    homepage: str | None = None
    favicon: str | None = None
    country: str | None = None
    country_code: str | None = None
    state: str | None = None
    languages: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    bitrate: int | None = None
    codec: str | None = None
    hls: bool = False
    is_online: bool = True
    click_count: int = 0

    @classmethod
    def from_station(cls, station: Station) -> "FavoriteStation":
        return cls(
            id=station.id,
            name=station.name,
            stream_url=station.stream_url,
            homepage=station.homepage,
            favicon=station.favicon,
            country=station.country,
            country_code=station.country_code,
            state=station.state,
            languages=list(station.languages),
            tags=list(station.tags[:SNAPSHOT_MAX_TAGS]),
            bitrate=station.bitrate,
            codec=station.codec,
            hls=station.hls,
            is_online=station.is_online,
            click_count=station.click_count,
        )


class FavoriteEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    slot: int = Field(ge=0)
    saved_at: int
    station: FavoriteStation | None = None


class FavoritesDocument(BaseModel):
    """单个会话的收藏夹文档。

    不变量：条目数不超过 max_slots，槽位唯一且位于 [0, max_slots)，电台 ID 唯一。
    """

    version: int = FAVORITES_DOCUMENT_VERSION
    entries: list[FavoriteEntry] = Field(default_factory=list)

    def sorted_entries(self) -> list[FavoriteEntry]:
        return sorted(self.entries, key=lambda entry: entry.slot)

    def find(self, station_id: str) -> FavoriteEntry | None:
        for entry in self.entries:
            if entry.id == station_id:
                return entry
        return None

    def free_slot(self, max_slots: int) -> int | None:
        used = {entry.slot for entry in self.entries}
        for slot in range(max_slots):
            if slot not in used:
                return slot
        return None

    def stale_slot(self, is_live: Callable[[str], bool]) -> int | None:
        stale = [entry.slot for entry in self.entries if not is_live(entry.id)]
        return min(stale, default=None)

    def put(
        self,
        snapshot: FavoriteStation,
        max_slots: int,
        slot: int | None = None,
        is_live: Callable[[str], bool] | None = None,
    ) -> FavoriteEntry:
        """保存电台到收藏夹。

        - 未指定槽位：已收藏则原位刷新快照，否则占用最小空闲槽位；
          没有空闲槽位时复用已不在目录中（is_live 为 False）的条目所占的最小槽位
        - 指定槽位：电台移动到该槽位，原占用者被覆盖

        Raises:
            ValidationError: 槽位越界
            CapacityError: 未指定槽位且所有槽位都被有效电台占用
        """
        if slot is not None and not 0 <= slot < max_slots:
            raise ValidationError(
                f"Slot must be between 0 and {max_slots - 1}, got {slot}"
            )

        existing = self.find(snapshot.id)
        if slot is None:
            if existing is not None:
                slot = existing.slot
            else:
                slot = self.free_slot(max_slots)
                if slot is None and is_live is not None:
                    slot = self.stale_slot(is_live)
                if slot is None:
                    raise CapacityError(
                        f"Favorites are full ({max_slots} slots); pass a slot to replace one"
                    )

        entry = FavoriteEntry(
            id=snapshot.id,
            slot=slot,
            saved_at=now_millis(),
            station=snapshot,
        )
        self.entries = [
            current
            for current in self.entries
            if current.id != snapshot.id and current.slot != slot
        ]
        self.entries.append(entry)
        self.entries.sort(key=lambda current: current.slot)
        return entry

    def remove(self, station_id: str) -> bool:
        before = len(self.entries)
        self.entries = [entry for entry in self.entries if entry.id != station_id]
        return len(self.entries) != before

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _legacy_entry(item: Any) -> dict[str, Any] | None:
    if isinstance(item, str):
        return {"id": item}
    if isinstance(item, dict) and isinstance(item.get("id"), str):
        return item
    return None


def _raw_entries(raw: Any) -> list[Any]:
    if isinstance(raw, list):
        return raw
    if isinstance(raw, dict):
        for field in ("entries", "items"):
            value = raw.get(field)
            if isinstance(value, list):
                return value
    return []


def load_document(raw: Any, max_slots: int) -> FavoritesDocument:
    """从存储的 JSON 还原收藏夹文档。

    旧版本文档（没有 slot 字段，或是纯 ID 列表）按位置分配槽位；
    非法 ID、重复 ID、重复或越界槽位的条目被丢弃。
    """
    version = raw.get("version") if isinstance(raw, dict) else None
    positional = version != FAVORITES_DOCUMENT_VERSION

    entries: list[FavoriteEntry] = []
    seen_ids: set[str] = set()
    used_slots: set[int] = set()
    for item in _raw_entries(raw):
        data = _legacy_entry(item)
        if data is None:
            continue
        station_id = sanitize_station_id(data["id"])
        if station_id is None or station_id in seen_ids:
            continue

        slot = len(entries) if positional else data.get("slot")
        if not isinstance(slot, int) or not 0 <= slot < max_slots or slot in used_slots:
            continue

        saved_at = data.get("savedAt")
        if not isinstance(saved_at, int) or saved_at <= 0:
            saved_at = now_millis()

        station = None
        if isinstance(data.get("station"), dict):
            try:
                station = FavoriteStation.model_validate(data["station"])
            except ValueError:
                station = None

        entries.append(
            FavoriteEntry(id=station_id, slot=slot, saved_at=saved_at, station=station)
        )
        seen_ids.add(station_id)
        used_slots.add(slot)

    entries.sort(key=lambda entry: entry.slot)
    return FavoritesDocument(entries=entries)
