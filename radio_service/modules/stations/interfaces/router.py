"""Station API routes."""

from fastapi import APIRouter, Depends, Path, Query, status
from fastapi.responses import StreamingResponse
from fastapi.security import HTTPAuthorizationCredentials
from starlette.background import BackgroundTask

from radio_service.core.application.security import (
    get_refresh_credentials,
    verify_refresh_token,
)
from radio_service.core.interfaces.http.response import ErrorResponse
from radio_service.modules.stations.application.catalog_service import CatalogService
from radio_service.modules.stations.application.dependencies import (
    get_catalog_service,
    get_query_service,
    get_stream_service,
    get_stream_validator,
)
from radio_service.modules.stations.application.models import StationQuery
from radio_service.modules.stations.application.query_service import (
    StationQueryService,
)
from radio_service.modules.stations.application.stream_service import StreamService
from radio_service.modules.stations.application.validation_service import (
    StreamValidator,
)
from radio_service.modules.stations.interfaces.schemas import (
    LIMIT_PATTERN,
    MAX_FILTER_LENGTH,
    MAX_OFFSET,
    MAX_SEARCH_LENGTH,
    STATION_ID_PATTERN,
    ClickResponse,
    StationListResponse,
)

router = APIRouter(tags=["stations"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.get(
    "/stations",
    response_model=StationListResponse,
    responses=ERROR_RESPONSES,
    summary="获取电台列表",
    description="按国家、语言、标签、流派与关键词过滤，支持 limit/offset/page 分页",
)
async def list_stations(
    refresh: bool = Query(False, description="先从上游刷新（需要 Bearer token）"),
    limit: str | None = Query(None, pattern=LIMIT_PATTERN, description="每页数量或 all"),
    offset: int | None = Query(None, ge=0, le=MAX_OFFSET, description="偏移量"),
    page: int | None = Query(None, ge=1, le=MAX_OFFSET, description="页码（从 1 开始）"),
    language: str | None = Query(None, max_length=MAX_FILTER_LENGTH),
    country: str | None = Query(None, max_length=MAX_FILTER_LENGTH),
    tag: str | None = Query(None, max_length=MAX_FILTER_LENGTH),
    genre: str | None = Query(None, max_length=MAX_FILTER_LENGTH),
    search: str | None = Query(None, max_length=MAX_SEARCH_LENGTH),
    credentials: HTTPAuthorizationCredentials | None = Depends(get_refresh_credentials),
    catalog_service: CatalogService = Depends(get_catalog_service),
    query_service: StationQueryService = Depends(get_query_service),
    validator: StreamValidator | None = Depends(get_stream_validator),
) -> dict:
    if refresh:
        verify_refresh_token(credentials)
        catalog = await catalog_service.refresh()
    else:
        catalog = await catalog_service.load()

    result = await query_service.query(
        catalog,
        StationQuery(
            limit=limit,
            offset=offset,
            page=page,
            language=language,
            country=country,
            tag=tag,
            genre=genre,
            search=search,
        ),
        validator.store if validator is not None else None,
    )
    return result.to_json_dict()


@router.post(
    "/stations/{station_id}/click",
    response_model=ClickResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses=ERROR_RESPONSES,
    summary="记录电台点击",
)
async def record_click(
    station_id: str = Path(..., pattern=STATION_ID_PATTERN),
    catalog_service: CatalogService = Depends(get_catalog_service),
) -> ClickResponse:
    await catalog_service.record_click(station_id)
    return ClickResponse(status="ok")


@router.get(
    "/stream/{station_id}",
    responses={**ERROR_RESPONSES, 502: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
    summary="代理电台音频流",
    response_class=StreamingResponse,
)
async def stream_station(
    station_id: str = Path(..., pattern=STATION_ID_PATTERN),
    stream_service: StreamService = Depends(get_stream_service),
) -> StreamingResponse:
    upstream = await stream_service.open(station_id)
    return StreamingResponse(
        upstream.body,
        status_code=upstream.status_code,
        media_type=upstream.media_type or "application/octet-stream",
        headers=upstream.headers,
        background=BackgroundTask(upstream.close),
    )
