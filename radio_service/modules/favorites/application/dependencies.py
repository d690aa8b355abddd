"""Favorites module application dependencies."""

from typing import NoReturn

from radio_service.modules.favorites.application.service import FavoritesService


def _missing_dependency(name: str) -> NoReturn:
    raise RuntimeError(f"Missing dependency override for {name}")


async def get_favorites_service() -> FavoritesService:
    _missing_dependency("FavoritesService")
