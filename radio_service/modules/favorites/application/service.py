"""Favorites application service."""

from radio_service.core.infrastructure.logging import BusinessEvents
from radio_service.modules.favorites.application.models import (
    FavoriteItem,
    FavoritesView,
)
from radio_service.modules.favorites.domain.entities import (
    FavoritesDocument,
    FavoriteStation,
    require_station_id,
)
from radio_service.modules.favorites.domain.repository import FavoritesRepository
from radio_service.modules.stations.application.catalog_service import CatalogService
from radio_service.modules.stations.domain.entities import CatalogPayload


class FavoritesService:
    """会话收藏夹：固定槽位的增删查。"""

    def __init__(
        self,
        repository: FavoritesRepository,
        catalog: CatalogService,
        max_slots: int,
    ):
        self.repository = repository
        self.catalog = catalog
        self.max_slots = max_slots

    async def list(self, session: str) -> FavoritesView:
        """列出收藏，并用当前目录刷新快照。

        目录中已不存在的条目不出现在结果中，但仍保留在文档里，直到其槽位被新收藏复用。
        """
        loaded = await self.catalog.load()
        document = await self.repository.load(session)
        view, changed = self._resolve(document, loaded.payload)
        if changed:
            await self.repository.save(session, document)
        else:
            await self.repository.touch(session)
        return view

    async def put(
        self,
        session: str,
        station_id: str,
        slot: int | None = None,
    ) -> FavoritesView:
        """收藏电台。

        没有空闲槽位时，已从目录中消失的收藏让出槽位。

        Raises:
            ValidationError: 电台 ID 或槽位非法
            StationNotFoundError: 电台不在当前目录中
            CapacityError: 未指定槽位且所有槽位都被当前目录中的电台占用
        """
        station_id = require_station_id(station_id)
        station = await self.catalog.get_station(station_id)
        loaded = await self.catalog.load()

        document = await self.repository.load(session)
        entry = document.put(
            FavoriteStation.from_station(station),
            self.max_slots,
            slot=slot,
            is_live=lambda entry_id: loaded.payload.find(entry_id) is not None,
        )
        view, _ = self._resolve(document, loaded.payload)
        await self.repository.save(session, document)

        BusinessEvents.favorite_saved(
            session=session, station_id=station_id, slot=entry.slot
        )
        return view

    async def remove(self, session: str, station_id: str) -> FavoritesView:
        station_id = require_station_id(station_id)
        loaded = await self.catalog.load()

        document = await self.repository.load(session)
        removed = document.remove(station_id)
        view, _ = self._resolve(document, loaded.payload)
        await self.repository.save(session, document)

        if removed:
            BusinessEvents.favorite_removed(session=session, station_id=station_id)
        return view

    def _resolve(
        self,
        document: FavoritesDocument,
        catalog: CatalogPayload,
    ) -> tuple[FavoritesView, bool]:
        """按当前目录解析条目，返回视图与快照是否有变化。"""
        items: list[FavoriteItem] = []
        changed = False
        for entry in document.sorted_entries():
            station = catalog.find(entry.id)
            if station is None:
                continue
            snapshot = FavoriteStation.from_station(station)
            if entry.station != snapshot:
                entry.station = snapshot
                changed = True
            items.append(
                FavoriteItem(slot=entry.slot, saved_at=entry.saved_at, station=snapshot)
            )
        return FavoritesView(max_slots=self.max_slots, items=items), changed
