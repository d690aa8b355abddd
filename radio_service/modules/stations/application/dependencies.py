"""Station module application dependencies."""

from typing import NoReturn

from fastapi import Depends

from radio_service.modules.stations.application.catalog_service import CatalogService
from radio_service.modules.stations.application.query_service import (
    StationQueryService,
)
from radio_service.modules.stations.application.stream_service import StreamService
from radio_service.modules.stations.application.validation_service import (
    StreamValidator,
)
from radio_service.modules.stations.domain.repository import StreamRelay


def _missing_dependency(name: str) -> NoReturn:
    raise RuntimeError(f"Missing dependency override for {name}")


async def get_catalog_service() -> CatalogService:
    _missing_dependency("CatalogService")


async def get_stream_validator() -> StreamValidator | None:
    _missing_dependency("StreamValidator")


async def get_stream_relay() -> StreamRelay:
    _missing_dependency("StreamRelay")


async def get_query_service() -> StationQueryService:
    _missing_dependency("StationQueryService")


async def get_stream_service(
    catalog: CatalogService = Depends(get_catalog_service),
    relay: StreamRelay = Depends(get_stream_relay),
    validator: StreamValidator | None = Depends(get_stream_validator),
) -> StreamService:
    return StreamService(catalog, relay, validator)
