"""Station API schemas."""

from pydantic import BaseModel, Field

from radio_service.modules.stations.application.models import StationListMeta
from radio_service.modules.stations.domain.entities import Station

STATION_ID_PATTERN = r"^[A-Za-z0-9:_-]{3,128}$"
LIMIT_PATTERN = r"^(\d{1,5}|all)$"
MAX_FILTER_LENGTH = 128
MAX_SEARCH_LENGTH = 160
MAX_OFFSET = 999_999


class StationListResponse(BaseModel):
    """电台列表响应。"""

    meta: StationListMeta = Field(..., description="分页与来源信息")
    items: list[Station] = Field(..., description="当前页电台")


class ClickResponse(BaseModel):
    status: str = Field("ok", description="处理状态")
