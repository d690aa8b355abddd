"""Station ports: 存储、上游与探测接口。"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass

from radio_service.modules.stations.domain.entities import (
    CatalogPayload,
    CountryGroup,
    StreamValidationResult,
)


class StationRepository(ABC):
    """关系型存储：追加式 payload 历史 + 当前 payload 指针。"""

    @abstractmethod
    async def load_current(self) -> CatalogPayload | None:
        """读取当前指针指向的 payload，不存在时返回 None。"""
        pass

    @abstractmethod
    async def current_fingerprint(self) -> str | None:
        """当前指针指向的 payload 指纹（不加载电台）。"""
        pass

    @abstractmethod
    async def save_payload(self, payload: CatalogPayload) -> int:
        """在单个事务中写入 payload、电台并切换当前指针。

        Returns:
            payload 行 id
        """
        pass

    @abstractmethod
    async def increment_click(self, station_id: str) -> bool:
        """累加点击数，电台不存在时返回 False。"""
        pass


class CatalogObjectStore(ABC):
    """对象存储：完整目录、元数据与按国家分片。"""

    @abstractmethod
    async def load_catalog(self) -> CatalogPayload | None:
        pass

    @abstractmethod
    async def put_catalog(self, payload: CatalogPayload) -> None:
        pass

    @abstractmethod
    async def put_metadata(self, payload: CatalogPayload) -> None:
        pass

    @abstractmethod
    async def put_country_shard(self, group: CountryGroup) -> None:
        pass


class CatalogFetcher(ABC):
    """上游目录抓取器。"""

    @abstractmethod
    async def fetch_catalog(self) -> CatalogPayload:
        """抓取完整目录。

        Raises:
            EmptyCatalogError: 没有抓到任何电台
        """
        pass

    @abstractmethod
    async def record_click(self, station_id: str) -> None:
        """向上游转发一次点击。"""
        pass


class StreamProbe(ABC):
    @abstractmethod
    async def probe(self, stream_url: str) -> bool:
        """探测单个流地址是否在线。

        Raises:
            ValidationProbeError: 超时或网络错误
        """
        pass


class ValidationResultStore(ABC):
    """流地址探测结果缓存。"""

    @abstractmethod
    async def get_many(
        self, stream_urls: Sequence[str]
    ) -> dict[str, StreamValidationResult]:
        """批量读取仍在有效期内的结果。"""
        pass

    @abstractmethod
    async def save_many(self, results: Sequence[StreamValidationResult]) -> None:
        pass


@dataclass
class UpstreamStream:
    """已建立连接的上游音频流。"""

    status_code: int
    media_type: str | None
    headers: dict[str, str]
    body: AsyncIterator[bytes]
    close: Callable[[], Awaitable[None]]


class StreamRelay(ABC):
    @abstractmethod
    async def open(self, stream_url: str) -> UpstreamStream:
        """连接上游流地址。

        Raises:
            StreamTimeoutError: 连接超时
            StreamProxyError: 网络错误或上游返回非 2xx
        """
        pass


class RefreshLock(ABC):
    """跨进程的目录刷新互斥锁（API 与定时任务共用）。"""

    @abstractmethod
    async def acquire(self) -> bool:
        """尝试获取锁，已被其他进程持有时返回 False。"""
        pass

    @abstractmethod
    async def release(self) -> None:
        pass
