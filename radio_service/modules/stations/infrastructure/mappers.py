"""Station entity-row mappers."""

from typing import Any

from radio_service.modules.stations.domain.entities import (
    CatalogPayload,
    Coordinates,
    Station,
)
from radio_service.modules.stations.infrastructure.models import (
    StationModel,
    StationPayloadModel,
)

STATION_COLUMNS = (
    "name",
    "stream_url",
    "homepage",
    "favicon",
    "country",
    "country_code",
    "state",
    "languages",
    "tags",
    "coordinates",
    "bitrate",
    "codec",
    "hls",
    "is_online",
    "last_checked_at",
    "last_changed_at",
    "click_count",
    "click_trend",
    "votes",
)


class StationMapper:
    """Station <-> stations 表行。"""

    def to_row(self, station: Station, payload_id: int) -> dict[str, Any]:
        return {
            "id": station.id,
            "payload_id": payload_id,
            "name": station.name,
            "stream_url": station.stream_url,
            "homepage": station.homepage,
            "favicon": station.favicon,
            "country": station.country,
            "country_code": station.country_code,
            "state": station.state,
            "languages": list(station.languages),
            "tags": list(station.tags),
            "coordinates": (
                station.coordinates.model_dump() if station.coordinates else None
            ),
            "bitrate": station.bitrate,
            "codec": station.codec,
            "hls": station.hls,
            "is_online": station.is_online,
            "last_checked_at": station.last_checked_at,
            "last_changed_at": station.last_changed_at,
            "click_count": station.click_count,
            "click_trend": station.click_trend,
            "votes": station.votes,
        }

    def to_domain(self, model: StationModel) -> Station:
        coordinates = None
        if isinstance(model.coordinates, dict):
            try:
                coordinates = Coordinates.model_validate(model.coordinates)
            except ValueError:
                coordinates = None
        return Station(
            id=model.id,
            name=model.name,
            stream_url=model.stream_url,
            homepage=model.homepage,
            favicon=model.favicon,
            country=model.country,
            country_code=model.country_code,
            state=model.state,
            languages=_clean_list(model.languages),
            tags=_clean_list(model.tags),
            coordinates=coordinates,
            bitrate=model.bitrate,
            codec=model.codec,
            hls=model.hls,
            is_online=model.is_online,
            last_checked_at=model.last_checked_at,
            last_changed_at=model.last_changed_at,
            click_count=model.click_count,
            click_trend=model.click_trend,
            votes=model.votes,
        )


class PayloadMapper:
    """CatalogPayload <-> station_payloads 表行（不含 stations）。"""

    def to_row(self, payload: CatalogPayload) -> dict[str, Any]:
        return {
            "schema_version": str(payload.schema_version),
            "updated_at": payload.updated_at,
            "source": payload.source,
            "requests": [
                request.model_dump(mode="json", by_alias=True)
                for request in payload.requests
            ],
            "total": payload.total,
            "fingerprint": payload.fingerprint,
        }

    def to_domain(
        self, model: StationPayloadModel, stations: list[Station]
    ) -> CatalogPayload:
        return CatalogPayload.model_validate(
            {
                "schemaVersion": _parse_schema_version(model.schema_version),
                "updatedAt": model.updated_at,
                "source": model.source,
                "requests": [
                    entry for entry in model.requests or [] if isinstance(entry, dict)
                ],
                "total": len(stations),
                "fingerprint": model.fingerprint,
                "stations": stations,
            }
        )


def _clean_list(values: list[str | None] | None) -> list[str]:
    return [value.strip() for value in values or [] if value and value.strip()]


def _parse_schema_version(value: str | None) -> int:
    try:
        return int((value or "").strip())
    except ValueError:
        return 0
