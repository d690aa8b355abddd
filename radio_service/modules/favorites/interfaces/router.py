"""Favorites API routes."""

from fastapi import APIRouter, Body, Depends, Path

from radio_service.core.application.security import get_favorites_session
from radio_service.core.interfaces.http.response import ErrorResponse
from radio_service.modules.favorites.application.dependencies import (
    get_favorites_service,
)
from radio_service.modules.favorites.application.service import FavoritesService
from radio_service.modules.favorites.interfaces.schemas import (
    FavoritesResponse,
    PutFavoriteRequest,
)

router = APIRouter(prefix="/favorites", tags=["favorites"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.get(
    "",
    response_model=FavoritesResponse,
    responses=ERROR_RESPONSES,
    summary="获取收藏夹",
)
async def list_favorites(
    session: str = Depends(get_favorites_session),
    service: FavoritesService = Depends(get_favorites_service),
) -> dict:
    view = await service.list(session)
    return view.to_json_dict()


@router.put(
    "/{station_id}",
    response_model=FavoritesResponse,
    responses=ERROR_RESPONSES,
    summary="收藏电台",
    description="省略 slot 时占用最小空闲槽位；指定 slot 时覆盖该槽位",
)
async def put_favorite(
    station_id: str = Path(..., max_length=256),
    body: PutFavoriteRequest | None = Body(None),
    session: str = Depends(get_favorites_session),
    service: FavoritesService = Depends(get_favorites_service),
) -> dict:
    slot = body.slot if body is not None else None
    view = await service.put(session, station_id, slot)
    return view.to_json_dict()


@router.delete(
    "/{station_id}",
    response_model=FavoritesResponse,
    responses=ERROR_RESPONSES,
    summary="取消收藏",
)
async def delete_favorite(
    station_id: str = Path(..., max_length=256),
    session: str = Depends(get_favorites_session),
    service: FavoritesService = Depends(get_favorites_service),
) -> dict:
    view = await service.remove(session, station_id)
    return view.to_json_dict()
