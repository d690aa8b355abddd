"""Tests for favorites documents and the favorites service."""

import json

import pytest

from radio_service.core.domain.exceptions import CapacityError, ValidationError
from radio_service.core.infrastructure.cache import CacheChain, MemoryCacheBackend
from radio_service.modules.favorites.application.service import FavoritesService
from radio_service.modules.favorites.domain.entities import (
    FAVORITES_DOCUMENT_VERSION,
    SNAPSHOT_MAX_TAGS,
    FavoritesDocument,
    FavoriteStation,
    load_document,
    require_station_id,
    sanitize_station_id,
)
from radio_service.modules.favorites.infrastructure.repositories import (
    RedisFavoritesRepository,
)
from radio_service.modules.stations.application.catalog_service import CatalogService
from radio_service.modules.stations.application.persistence_service import (
    PersistenceWriter,
)
from radio_service.modules.stations.domain.exceptions import StationNotFoundError

pytestmark = pytest.mark.anyio

MAX_SLOTS = 6
SESSION = "session-abc123"
FAVORITES_KEY = f"radio:favorites:client:{SESSION}"


def snapshot(make_station, station_id: str) -> FavoriteStation:
    return FavoriteStation.from_station(make_station(station_id))


class TestStationIds:
    def test_sanitize_trims_and_validates(self) -> None:
        assert sanitize_station_id("  abc-123 ") == "abc-123"
        assert sanitize_station_id("ab") is None
        assert sanitize_station_id("bad id") is None
        assert sanitize_station_id("x" * 129) is None

    def test_require_station_id_raises(self) -> None:
        with pytest.raises(ValidationError):
            require_station_id("../etc")


class TestFavoritesDocument:
    def test_put_uses_lowest_free_slot(self, make_station) -> None:
        document = FavoritesDocument()
        document.put(snapshot(make_station, "st-a"), MAX_SLOTS, slot=0)
        document.put(snapshot(make_station, "st-b"), MAX_SLOTS, slot=2)

        entry = document.put(snapshot(make_station, "st-c"), MAX_SLOTS)

        assert entry.slot == 1

    def test_put_existing_station_keeps_slot(self, make_station) -> None:
        document = FavoritesDocument()
        document.put(snapshot(make_station, "st-a"), MAX_SLOTS, slot=4)

        entry = document.put(snapshot(make_station, "st-a"), MAX_SLOTS)

        assert entry.slot == 4
        assert len(document.entries) == 1

    def test_full_document_rejects_unslotted_put(self, make_station) -> None:
        document = FavoritesDocument()
        for index in range(MAX_SLOTS):
            document.put(snapshot(make_station, f"st-{index}"), MAX_SLOTS)

        with pytest.raises(CapacityError):
            document.put(snapshot(make_station, "st-extra"), MAX_SLOTS)

    def test_full_document_reuses_lowest_stale_slot(self, make_station) -> None:
        document = FavoritesDocument()
        for index in range(MAX_SLOTS):
            document.put(snapshot(make_station, f"st-{index}"), MAX_SLOTS)
        live = {f"st-{index}" for index in (0, 1, 3, 5)}

        entry = document.put(
            snapshot(make_station, "st-new"), MAX_SLOTS, is_live=live.__contains__
        )

        assert entry.slot == 2
        assert document.find("st-2") is None
        assert document.find("st-4").slot == 4

    def test_full_document_of_live_stations_still_rejects(self, make_station) -> None:
        document = FavoritesDocument()
        for index in range(MAX_SLOTS):
            document.put(snapshot(make_station, f"st-{index}"), MAX_SLOTS)

        with pytest.raises(CapacityError):
            document.put(
                snapshot(make_station, "st-extra"), MAX_SLOTS, is_live=lambda _: True
            )

    def test_slotted_put_replaces_occupant(self, make_station) -> None:
        document = FavoritesDocument()
        for index in range(MAX_SLOTS):
            document.put(snapshot(make_station, f"st-{index}"), MAX_SLOTS)

        document.put(snapshot(make_station, "st-new"), MAX_SLOTS, slot=3)

        assert len(document.entries) == MAX_SLOTS
        assert document.find("st-3") is None
        assert document.find("st-new").slot == 3

    def test_slotted_put_moves_station(self, make_station) -> None:
        document = FavoritesDocument()
        document.put(snapshot(make_station, "st-a"), MAX_SLOTS, slot=0)

        document.put(snapshot(make_station, "st-a"), MAX_SLOTS, slot=5)

        assert [(entry.id, entry.slot) for entry in document.entries] == [("st-a", 5)]

    @pytest.mark.parametrize("slot", [-1, MAX_SLOTS])
    def test_out_of_range_slot_is_rejected(self, make_station, slot: int) -> None:
        with pytest.raises(ValidationError):
            FavoritesDocument().put(snapshot(make_station, "st-a"), MAX_SLOTS, slot=slot)

    def test_remove(self, make_station) -> None:
        document = FavoritesDocument()
        document.put(snapshot(make_station, "st-a"), MAX_SLOTS)

        assert document.remove("st-a") is True
        assert document.remove("st-a") is False

    def test_snapshot_caps_tags(self, make_station) -> None:
        station = make_station("st-a", tags=[f"tag{i}" for i in range(20)])

        assert len(FavoriteStation.from_station(station).tags) == SNAPSHOT_MAX_TAGS

    def test_json_uses_camel_case(self, make_station) -> None:
        document = FavoritesDocument()
        document.put(snapshot(make_station, "st-a"), MAX_SLOTS)

        data = document.to_json_dict()

        assert data["version"] == FAVORITES_DOCUMENT_VERSION
        entry = data["entries"][0]
        assert set(entry) == {"id", "slot", "savedAt", "station"}
        assert entry["station"]["streamUrl"].endswith("st-a.mp3")


class TestLoadDocument:
    def test_missing_document_is_empty(self) -> None:
        assert load_document(None, MAX_SLOTS).entries == []

    def test_plain_id_list_gets_positional_slots(self) -> None:
        document = load_document(["st-a", "bad id", "st-b"], MAX_SLOTS)

        assert [(entry.id, entry.slot) for entry in document.entries] == [
            ("st-a", 0),
            ("st-b", 1),
        ]

    def test_legacy_items_are_upgraded(self) -> None:
        raw = {"version": 2, "items": [{"id": "st-a", "savedAt": 123}, {"id": "st-b"}]}

        document = load_document(raw, MAX_SLOTS)

        assert [entry.slot for entry in document.entries] == [0, 1]
        assert document.entries[0].saved_at == 123
        assert document.entries[1].saved_at > 0

    def test_current_version_drops_invalid_entries(self) -> None:
        raw = {
            "version": FAVORITES_DOCUMENT_VERSION,
            "entries": [
                {"id": "st-a", "slot": 2, "savedAt": 1},
                {"id": "st-a", "slot": 3, "savedAt": 1},
                {"id": "st-b", "slot": 2, "savedAt": 1},
                {"id": "st-c", "slot": MAX_SLOTS, "savedAt": 1},
                {"id": "st-d", "slot": 0, "savedAt": 1},
                {"slot": 1},
            ],
        }

        document = load_document(raw, MAX_SLOTS)

        assert [(entry.id, entry.slot) for entry in document.entries] == [
            ("st-d", 0),
            ("st-a", 2),
        ]

    def test_truncates_to_capacity(self) -> None:
        document = load_document([f"st-{i}" for i in range(10)], MAX_SLOTS)

        assert len(document.entries) == MAX_SLOTS


@pytest.fixture
async def catalog(memory_cache, static_fetcher_cls, sample_payload) -> CatalogService:
    service = CatalogService(
        cache=memory_cache,
        fetcher=static_fetcher_cls(sample_payload),
        writer=PersistenceWriter(repository=None, object_store=None),
        cache_key="radio:stations:all",
        cache_ttl=900,
    )
    await service.load()
    return service


@pytest.fixture
def favorites_service(fake_redis, catalog) -> FavoritesService:
    repository = RedisFavoritesRepository(fake_redis, ttl_seconds=3600, max_slots=MAX_SLOTS)
    return FavoritesService(repository=repository, catalog=catalog, max_slots=MAX_SLOTS)


class TestFavoritesService:
    async def test_put_and_list(self, favorites_service, fake_redis) -> None:
        await favorites_service.put(SESSION, "fr-1")
        view = await favorites_service.put(SESSION, "de-2", slot=4)

        data = view.to_json_dict()
        assert data["meta"] == {"maxSlots": MAX_SLOTS}
        assert [(item["slot"], item["station"]["id"]) for item in data["items"]] == [
            (0, "fr-1"),
            (4, "de-2"),
        ]
        assert fake_redis.ttls[FAVORITES_KEY] == 3600

    async def test_unknown_station_is_not_found(self, favorites_service) -> None:
        with pytest.raises(StationNotFoundError):
            await favorites_service.put(SESSION, "gone-1")

    async def test_invalid_station_id(self, favorites_service) -> None:
        with pytest.raises(ValidationError):
            await favorites_service.put(SESSION, "x")

    async def test_stale_entries_are_hidden_but_kept(
        self, favorites_service, fake_redis
    ) -> None:
        stored = {
            "version": FAVORITES_DOCUMENT_VERSION,
            "entries": [
                {"id": "gone-1", "slot": 0, "savedAt": 1},
                {"id": "us-1", "slot": 1, "savedAt": 2},
            ],
        }
        fake_redis.values[FAVORITES_KEY] = json.dumps(stored)

        view = await favorites_service.list(SESSION)

        assert [item.station.id for item in view.items] == ["us-1"]
        saved = json.loads(fake_redis.values[FAVORITES_KEY])
        assert [entry["id"] for entry in saved["entries"]] == ["gone-1", "us-1"]
        assert saved["entries"][1]["station"]["name"] == "Station us-1"

    async def test_list_refreshes_ttl(self, favorites_service, fake_redis) -> None:
        await favorites_service.put(SESSION, "de-1")
        fake_redis.ttls[FAVORITES_KEY] = 5

        await favorites_service.list(SESSION)

        assert fake_redis.ttls[FAVORITES_KEY] == 3600

    async def test_unreadable_document_starts_fresh(
        self, favorites_service, fake_redis
    ) -> None:
        fake_redis.values[FAVORITES_KEY] = "{not json"

        view = await favorites_service.put(SESSION, "de-1")

        assert [item.slot for item in view.items] == [0]

    async def test_remove(self, favorites_service) -> None:
        await favorites_service.put(SESSION, "de-1")

        view = await favorites_service.remove(SESSION, "de-1")
        again = await favorites_service.remove(SESSION, "de-1")

        assert view.items == []
        assert again.items == []

    async def test_put_reuses_slot_of_vanished_station(
        self, favorites_service, fake_redis
    ) -> None:
        ids = ["de-1", "de-2", "fr-1", "gone-1", "gone-2", "us-1"]
        stored = {
            "version": FAVORITES_DOCUMENT_VERSION,
            "entries": [
                {"id": station_id, "slot": slot, "savedAt": 1}
                for slot, station_id in enumerate(ids)
            ],
        }
        fake_redis.values[FAVORITES_KEY] = json.dumps(stored)

        view = await favorites_service.put(SESSION, "xx-1")

        assert [(item.slot, item.station.id) for item in view.items] == [
            (0, "de-1"),
            (1, "de-2"),
            (2, "fr-1"),
            (3, "xx-1"),
            (5, "us-1"),
        ]
        saved = json.loads(fake_redis.values[FAVORITES_KEY])
        assert [entry["id"] for entry in saved["entries"]] == [
            "de-1",
            "de-2",
            "fr-1",
            "xx-1",
            "gone-2",
            "us-1",
        ]
