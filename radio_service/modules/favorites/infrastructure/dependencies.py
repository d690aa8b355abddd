"""Favorites module infrastructure dependencies."""

from fastapi import Depends

from radio_service.core.config import settings
from radio_service.core.infrastructure.redis import RedisClient, get_redis_client
from radio_service.modules.favorites.application.service import FavoritesService
from radio_service.modules.favorites.infrastructure.repositories import (
    RedisFavoritesRepository,
)
from radio_service.modules.stations.application.catalog_service import CatalogService
from radio_service.modules.stations.infrastructure.dependencies import (
    get_catalog_service,
)


async def get_favorites_repository(
    client: RedisClient = Depends(get_redis_client),
) -> RedisFavoritesRepository:
    return RedisFavoritesRepository(
        client,
        ttl_seconds=settings.FAVORITES_TTL_SECONDS,
        max_slots=settings.FAVORITES_MAX_SLOTS,
    )


async def get_favorites_service(
    repository: RedisFavoritesRepository = Depends(get_favorites_repository),
    catalog: CatalogService = Depends(get_catalog_service),
) -> FavoritesService:
    return FavoritesService(
        repository=repository,
        catalog=catalog,
        max_slots=settings.FAVORITES_MAX_SLOTS,
    )
