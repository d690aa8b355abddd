"""Tests for the HTTP stream probe and relay."""

import httpx
import pytest

from radio_service.modules.stations.domain.exceptions import (
    StreamProxyError,
    StreamTimeoutError,
    ValidationProbeError,
)
from radio_service.modules.stations.infrastructure.stream_probe import (
    PROBE_RANGE,
    HttpStreamProbe,
)
from radio_service.modules.stations.infrastructure.stream_proxy import HttpStreamRelay

pytestmark = pytest.mark.anyio

URL = "https://streams.example.com/live.mp3"


def transport_returning(status_code: int, **kwargs) -> httpx.MockTransport:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status_code, **kwargs)

    transport = httpx.MockTransport(handler)
    transport.seen = seen
    return transport


def transport_raising(error: Exception) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise error

    return httpx.MockTransport(handler)


class TestHttpStreamProbe:
    @pytest.mark.parametrize("status_code,expected", [(200, True), (206, True), (404, False)])
    async def test_status_decides_online(self, status_code: int, expected: bool) -> None:
        transport = transport_returning(status_code, content=b"x")
        probe = HttpStreamProbe(1000, "radio-service/test", transport=transport)

        assert await probe.probe(URL) is expected
        assert transport.seen[0].headers["Range"] == PROBE_RANGE
        await probe.aclose()

    async def test_timeout_raises_check_failure(self) -> None:
        probe = HttpStreamProbe(
            1000, "radio-service/test", transport=transport_raising(httpx.ReadTimeout("slow"))
        )

        with pytest.raises(ValidationProbeError):
            await probe.probe(URL)
        await probe.aclose()


class TestHttpStreamRelay:
    async def test_open_streams_body_and_headers(self) -> None:
        transport = transport_returning(
            200,
            content=b"audio-bytes",
            headers={"content-type": "audio/mpeg", "icy-name": "Jazz", "x-secret": "1"},
        )
        relay = HttpStreamRelay(1000, "radio-service/test", transport=transport)

        upstream = await relay.open(URL)
        chunks = [chunk async for chunk in upstream.body]
        await upstream.close()

        assert b"".join(chunks) == b"audio-bytes"
        assert upstream.media_type == "audio/mpeg"
        assert upstream.headers == {"icy-name": "Jazz"}
        assert transport.seen[0].headers["Icy-MetaData"] == "0"

    async def test_non_success_status(self) -> None:
        relay = HttpStreamRelay(1000, "radio-service/test", transport=transport_returning(500))

        with pytest.raises(StreamProxyError):
            await relay.open(URL)

    async def test_connect_timeout(self) -> None:
        relay = HttpStreamRelay(
            1000,
            "radio-service/test",
            transport=transport_raising(httpx.ConnectTimeout("slow")),
        )

        with pytest.raises(StreamTimeoutError):
            await relay.open(URL)

    async def test_connect_error(self) -> None:
        relay = HttpStreamRelay(
            1000,
            "radio-service/test",
            transport=transport_raising(httpx.ConnectError("refused")),
        )

        with pytest.raises(StreamProxyError):
            await relay.open(URL)
