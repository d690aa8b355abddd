"""Stream proxy application service."""

from radio_service.modules.stations.application.catalog_service import CatalogService
from radio_service.modules.stations.application.validation_service import (
    StreamValidator,
)
from radio_service.modules.stations.domain.exceptions import StreamOfflineError
from radio_service.modules.stations.domain.repository import (
    StreamRelay,
    UpstreamStream,
)


class StreamService:
    def __init__(
        self,
        catalog: CatalogService,
        relay: StreamRelay,
        validator: StreamValidator | None = None,
    ):
        self.catalog = catalog
        self.relay = relay
        self.validator = validator

    async def open(self, station_id: str) -> UpstreamStream:
        """打开电台音频流；缓存中明确离线时直接返回 503。"""
        station = await self.catalog.get_station(station_id)
        if self.validator is not None and await self.validator.is_offline(
            station.stream_url
        ):
            raise StreamOfflineError(station_id)
        return await self.relay.open(station.stream_url)
