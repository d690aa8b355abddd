"""HTTP API tests (application dependencies overridden with in-memory services)."""

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import httpx
import pytest

from main import app
from radio_service.core.config import settings
from radio_service.modules.favorites.application import (
    dependencies as favorites_app_deps,
)
from radio_service.modules.favorites.application.service import FavoritesService
from radio_service.modules.favorites.infrastructure.repositories import (
    RedisFavoritesRepository,
)
from radio_service.modules.stations.application import (
    dependencies as stations_app_deps,
)
from radio_service.modules.stations.application.catalog_service import CatalogService
from radio_service.modules.stations.application.persistence_service import (
    PersistenceWriter,
)
from radio_service.modules.stations.application.query_service import (
    StationQueryService,
)
from radio_service.modules.stations.application.validation_service import (
    StreamValidator,
)
from radio_service.modules.stations.domain.entities import StreamValidationResult
from radio_service.modules.stations.domain.repository import (
    StreamRelay,
    UpstreamStream,
)

pytestmark = pytest.mark.anyio

SESSION = "client-session-0001"
REFRESH_TOKEN = "test-refresh-token"


class FakeRelay(StreamRelay):
    def __init__(self) -> None:
        self.opened: list[str] = []
        self.close = AsyncMock()

    async def open(self, stream_url: str) -> UpstreamStream:
        self.opened.append(stream_url)

        async def body() -> AsyncIterator[bytes]:
            yield b"ID3"
            yield b"audio"

        return UpstreamStream(
            status_code=200,
            media_type="audio/mpeg",
            headers={"icy-name": "Station"},
            body=body(),
            close=self.close,
        )


@pytest.fixture
def catalog(memory_cache, static_fetcher_cls, sample_payload) -> CatalogService:
    return CatalogService(
        cache=memory_cache,
        fetcher=static_fetcher_cls(sample_payload),
        writer=PersistenceWriter(repository=None, object_store=None),
        cache_key="radio:stations:all",
        cache_ttl=900,
    )


@pytest.fixture
def validator(scripted_probe_cls, validation_store) -> StreamValidator:
    return StreamValidator(probe=scripted_probe_cls(), store=validation_store, enabled=False)


@pytest.fixture
def relay() -> FakeRelay:
    return FakeRelay()


@pytest.fixture
async def client(
    catalog, validator, relay, fake_redis, monkeypatch
) -> AsyncIterator[httpx.AsyncClient]:
    monkeypatch.setattr(settings, "STATIONS_REFRESH_TOKEN", REFRESH_TOKEN)
    query = StationQueryService(default_limit=50, max_limit=500)
    favorites = FavoritesService(
        repository=RedisFavoritesRepository(fake_redis, ttl_seconds=3600, max_slots=6),
        catalog=catalog,
        max_slots=6,
    )

    overrides = {
        stations_app_deps.get_catalog_service: lambda: catalog,
        stations_app_deps.get_query_service: lambda: query,
        stations_app_deps.get_stream_validator: lambda: validator,
        stations_app_deps.get_stream_relay: lambda: relay,
        favorites_app_deps.get_favorites_service: lambda: favorites,
    }
    previous = dict(app.dependency_overrides)
    app.dependency_overrides.update(overrides)
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(
            transport=transport, base_url=f"http://test{settings.API_PREFIX}"
        ) as http_client:
            yield http_client
    finally:
        app.dependency_overrides.clear()
        app.dependency_overrides.update(previous)


class TestStations:
    async def test_list_stations(self, client, sample_payload) -> None:
        response = await client.get("/stations")

        assert response.status_code == 200
        body = response.json()
        assert body["meta"]["total"] == sample_payload.total
        assert body["meta"]["cacheSource"] == "radio-browser"
        assert len(body["items"]) == sample_payload.total

    async def test_country_filter(self, client) -> None:
        response = await client.get("/stations", params={"country": "FR"})

        assert [item["id"] for item in response.json()["items"]] == ["fr-1"]

    async def test_invalid_limit_is_rejected(self, client) -> None:
        response = await client.get("/stations", params={"limit": "lots"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_refresh_requires_token(self, client) -> None:
        response = await client.get("/stations", params={"refresh": "true"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_refresh_with_wrong_token(self, client) -> None:
        response = await client.get(
            "/stations",
            params={"refresh": "true"},
            headers={"Authorization": "Bearer nope"},
        )

        assert response.status_code == 401

    async def test_refresh_with_token(self, client, catalog) -> None:
        response = await client.get(
            "/stations",
            params={"refresh": "true"},
            headers={"Authorization": f"Bearer {REFRESH_TOKEN}"},
        )

        assert response.status_code == 200
        assert catalog.fetcher.calls == 1

    async def test_click(self, client, catalog) -> None:
        response = await client.post("/stations/de-1/click")

        assert response.status_code == 202
        assert response.json() == {"status": "ok"}
        assert catalog.fetcher.clicks == ["de-1"]

    async def test_click_unknown_station(self, client) -> None:
        response = await client.post("/stations/nope-1/click")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    async def test_click_invalid_station_id(self, client) -> None:
        response = await client.post("/stations/a b/click")

        assert response.status_code == 400


class TestStream:
    async def test_stream_is_relayed(self, client, relay) -> None:
        response = await client.get("/stream/de-1")

        assert response.status_code == 200
        assert response.content == b"ID3audio"
        assert response.headers["content-type"].startswith("audio/mpeg")
        assert relay.opened == ["https://streams.example.com/de-1.mp3"]
        relay.close.assert_awaited_once()

    async def test_offline_stream_is_refused(
        self, client, relay, validation_store
    ) -> None:
        url = "https://streams.example.com/de-1.mp3"
        validation_store.results[url] = StreamValidationResult(
            stream_url=url, is_online=False, checked_at=datetime.now(UTC)
        )

        response = await client.get("/stream/de-1")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "STREAM_OFFLINE"
        assert relay.opened == []


class TestFavorites:
    async def test_session_header_is_required(self, client) -> None:
        response = await client.get("/favorites")

        assert response.status_code == 401

    async def test_put_list_delete(self, client) -> None:
        headers = {"X-Favorites-Session": SESSION}

        put = await client.put("/favorites/fr-1", headers=headers)
        slotted = await client.put("/favorites/us-1", json={"slot": 3}, headers=headers)
        listed = await client.get("/favorites", headers=headers)
        deleted = await client.delete("/favorites/fr-1", headers=headers)

        assert put.status_code == 200
        assert slotted.status_code == 200
        assert listed.json()["meta"] == {"maxSlots": 6}
        assert [(i["slot"], i["station"]["id"]) for i in listed.json()["items"]] == [
            (0, "fr-1"),
            (3, "us-1"),
        ]
        assert [i["station"]["id"] for i in deleted.json()["items"]] == ["us-1"]

    async def test_unknown_station(self, client) -> None:
        response = await client.put(
            "/favorites/nope-1", headers={"X-Favorites-Session": SESSION}
        )

        assert response.status_code == 404

    async def test_slot_out_of_range(self, client) -> None:
        response = await client.put(
            "/favorites/fr-1",
            json={"slot": 6},
            headers={"X-Favorites-Session": SESSION},
        )

        assert response.status_code == 400
