"""HTTP 流地址探测。"""

from __future__ import annotations

import httpx

from radio_service.core.config import settings
from radio_service.modules.stations.domain.exceptions import ValidationProbeError
from radio_service.modules.stations.domain.repository import StreamProbe

PROBE_RANGE = "bytes=0-4095"


class HttpStreamProbe(StreamProbe):
    """只请求前 4KB，2xx（含 206）视为在线。"""

    def __init__(
        self,
        timeout_ms: int,
        user_agent: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout_ms / 1000
        self.user_agent = user_agent
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls) -> HttpStreamProbe:
        return cls(
            settings.STREAM_VALIDATION_TIMEOUT_MS,
            settings.RADIO_BROWSER_USER_AGENT,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def probe(self, stream_url: str) -> bool:
        try:
            async with self.client.stream(
                "GET", stream_url, headers={"Range": PROBE_RANGE}
            ) as response:
                return response.is_success
        except httpx.TimeoutException as e:
            raise ValidationProbeError(stream_url, "timeout") from e
        except httpx.HTTPError as e:
            raise ValidationProbeError(stream_url, str(e) or type(e).__name__) from e
