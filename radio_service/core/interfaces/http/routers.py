"""API router configuration."""

from fastapi import APIRouter

from radio_service.modules.favorites.interfaces.router import router as favorites_router
from radio_service.modules.stations.interfaces.router import router as stations_router

api_router = APIRouter()

# Stations / stream proxy
api_router.include_router(stations_router)

# Favorites
api_router.include_router(favorites_router)
