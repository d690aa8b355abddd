"""Station domain exceptions."""

from fastapi import status

from radio_service.core.domain.exceptions import (
    DomainException,
    EntityNotFoundError,
    ServiceUnavailableError,
)


class StationNotFoundError(EntityNotFoundError):
    """Raised when a station id is not in the live catalog."""

    def __init__(self, station_id: str):
        super().__init__("Station", station_id)


class UpstreamFetchError(DomainException):
    """radio-browser 请求失败（单个国家/单页，除非全部失败否则可容忍）。"""

    http_status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "UPSTREAM_ERROR"

    def __init__(self, message: str, url: str | None = None):
        self.url = url
        super().__init__(message)


class EmptyCatalogError(UpstreamFetchError):
    """一次抓取没有得到任何电台，视为本次刷新失败。"""

    error_code = "EMPTY_CATALOG"

    def __init__(self, message: str = "Radio Browser returned no stations"):
        super().__init__(message)


class CatalogUnavailableError(ServiceUnavailableError):
    """所有数据源都无法提供电台目录。"""

    error_code = "CATALOG_UNAVAILABLE"

    def __init__(self, message: str = "Station catalog is not available"):
        super().__init__(message)


class RefreshInProgressError(CatalogUnavailableError):
    """其他进程正在刷新，且本地没有可返回的目录。"""

    error_code = "REFRESH_IN_PROGRESS"

    def __init__(
        self, message: str = "Station catalog refresh is already in progress"
    ):
        super().__init__(message)


class StreamOfflineError(ServiceUnavailableError):
    error_code = "STREAM_OFFLINE"

    def __init__(self, station_id: str):
        super().__init__(f"Stream for station '{station_id}' is offline")


class StreamProxyError(DomainException):
    """代理上游音频流失败。"""

    http_status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "STREAM_UNAVAILABLE"


class StreamTimeoutError(StreamProxyError):
    http_status_code = status.HTTP_504_GATEWAY_TIMEOUT
    error_code = "STREAM_TIMEOUT"


class PersistenceError(RuntimeError):
    """存储写入失败（仅记录日志，不影响请求）。"""

    def __init__(self, target: str, message: str):
        self.target = target
        super().__init__(f"{target}: {message}")


class ValidationProbeError(RuntimeError):
    """单个流地址探测失败（调用方视为离线）。"""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Probe failed for {url}: {reason}")
