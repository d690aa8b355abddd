"""上游音频流代理（只转发字节，不转码）。"""

from __future__ import annotations

import httpx
from loguru import logger

from radio_service.core.config import settings
from radio_service.modules.stations.domain.exceptions import (
    StreamProxyError,
    StreamTimeoutError,
)
from radio_service.modules.stations.domain.repository import (
    StreamRelay,
    UpstreamStream,
)

FORWARDED_HEADERS = (
    "content-type",
    "icy-name",
    "icy-genre",
    "icy-br",
    "icy-description",
    "icy-url",
    "cache-control",
)


class HttpStreamRelay(StreamRelay):
    def __init__(
        self,
        timeout_ms: int,
        user_agent: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        # 只限制连接与首包，音频流本身是长连接
        self.timeout = httpx.Timeout(timeout_ms / 1000, read=None)
        self.user_agent = user_agent
        self._transport = transport

    @classmethod
    def from_settings(cls) -> HttpStreamRelay:
        return cls(settings.STREAM_PROXY_TIMEOUT_MS, settings.RADIO_BROWSER_USER_AGENT)

    async def open(self, stream_url: str) -> UpstreamStream:
        client = httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent, "Icy-MetaData": "0"},
            transport=self._transport,
        )
        try:
            response = await client.send(
                client.build_request("GET", stream_url), stream=True
            )
        except httpx.TimeoutException as e:
            await client.aclose()
            raise StreamTimeoutError(f"Timed out connecting to {stream_url}") from e
        except httpx.HTTPError as e:
            await client.aclose()
            raise StreamProxyError(f"Failed to connect to stream: {e}") from e

        if not response.is_success:
            await response.aclose()
            await client.aclose()
            raise StreamProxyError(
                f"Upstream stream returned HTTP {response.status_code}"
            )

        async def close() -> None:
            await response.aclose()
            await client.aclose()

        async def body():
            try:
                async for chunk in response.aiter_raw():
                    yield chunk
            except httpx.HTTPError as e:
                logger.info(f"Stream {stream_url} ended: {e}")

        headers = {
            name: value
            for name, value in response.headers.items()
            if name.lower() in FORWARDED_HEADERS and name.lower() != "content-type"
        }
        return UpstreamStream(
            status_code=response.status_code,
            media_type=response.headers.get("content-type"),
            headers=headers,
            body=body(),
            close=close,
        )
