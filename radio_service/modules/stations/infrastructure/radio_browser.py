"""radio-browser 目录抓取器。

流程：
1. /json/countries 列出国家
2. 按国家并发（有界）抓取 /json/stations/bycountrycodeexact/<code>，同一国家内按页顺序抓取
3. 单个国家失败只记录在 requests 中，不影响整体；全部为空时抛出 EmptyCatalogError

每个逻辑请求从轮转游标开始依次尝试主机池中的主机，直到有一个成功。
"""

from __future__ import annotations

import itertools
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from radio_service.core.application.concurrency import bounded_gather
from radio_service.core.config import settings
from radio_service.core.infrastructure.logging import BusinessEvents
from radio_service.modules.stations.domain.entities import (
    CatalogPayload,
    RequestDescriptor,
)
from radio_service.modules.stations.domain.exceptions import (
    EmptyCatalogError,
    UpstreamFetchError,
)
from radio_service.modules.stations.domain.normalizer import build_payload, normalize
from radio_service.modules.stations.domain.repository import CatalogFetcher

FALLBACK_HOSTS = (
    "https://de1.api.radio-browser.info",
    "https://de2.api.radio-browser.info",
    "https://de3.api.radio-browser.info",
    "https://fr1.api.radio-browser.info",
    "https://nl1.api.radio-browser.info",
    "https://ru1.api.radio-browser.info",
)

COUNTRIES_PATH = "/json/countries"
STATIONS_BY_COUNTRY_PATH = "/json/stations/bycountrycodeexact"
CLICK_PATH = "/json/url"

STATION_QUERY = {
    "hidebroken": "true",
    "order": "clickcount",
    "reverse": "true",
    "lastcheckok": "1",
    "ssl_error": "0",
}


def build_host_pool(base_url: str | None) -> list[str]:
    """配置的主机优先，其后是官方镜像（忽略大小写去重）。"""
    pool: list[str] = []
    seen: set[str] = set()
    for candidate in (base_url or "", *FALLBACK_HOSTS):
        normalized = candidate.strip().rstrip("/")
        if not normalized or normalized.lower() in seen:
            continue
        seen.add(normalized.lower())
        pool.append(normalized)
    return pool


@dataclass(frozen=True)
class Country:
    code: str
    name: str | None = None
    station_count: int | None = None


@dataclass
class CountryFetch:
    country: Country
    records: list[dict[str, Any]] = field(default_factory=list)
    requests: list[RequestDescriptor] = field(default_factory=list)


class RadioBrowserFetcher(CatalogFetcher):
    """按国家分区抓取 radio-browser 目录。"""

    def __init__(
        self,
        base_url: str,
        user_agent: str,
        *,
        page_size: int = 0,
        max_pages: int = 0,
        limit: int = 0,
        country_concurrency: int = 4,
        timeout_ms: int = 15000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.hosts = build_host_pool(base_url)
        if not self.hosts:
            raise ValueError("RADIO_BROWSER_BASE_URL must be configured")
        self.user_agent = user_agent
        self.page_size = page_size
        self.max_pages = max_pages
        self.limit = limit
        self.country_concurrency = max(1, country_concurrency)
        self.timeout = timeout_ms / 1000
        self._transport = transport
        self._cursor = itertools.count()

    @classmethod
    def from_settings(cls) -> RadioBrowserFetcher:
        return cls(
            settings.RADIO_BROWSER_BASE_URL,
            settings.RADIO_BROWSER_USER_AGENT,
            page_size=settings.RADIO_BROWSER_PAGE_SIZE,
            max_pages=settings.RADIO_BROWSER_MAX_PAGES,
            limit=settings.RADIO_BROWSER_LIMIT,
            country_concurrency=settings.RADIO_BROWSER_COUNTRY_CONCURRENCY,
            timeout_ms=settings.RADIO_BROWSER_TIMEOUT_MS,
        )

    def ordered_hosts(self) -> list[str]:
        """从轮转游标开始的主机顺序。"""
        start = next(self._cursor) % len(self.hosts)
        return self.hosts[start:] + self.hosts[:start]

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            transport=self._transport,
        )

    async def _get(
        self,
        client: httpx.AsyncClient,
        path: str,
        params: dict[str, str] | None = None,
    ) -> tuple[httpx.Response, str]:
        """依次尝试各主机，返回第一个成功的响应和实际 URL。"""
        last_error: str = "no hosts available"
        last_url = path
        for host in self.ordered_hosts():
            url = f"{host}{path}"
            last_url = url
            try:
                response = await client.get(url, params=params)
                response.raise_for_status()
                return response, str(response.request.url)
            except httpx.TimeoutException:
                last_error = "timeout"
            except httpx.HTTPStatusError as exc:
                last_error = f"HTTP {exc.response.status_code}"
            except httpx.HTTPError as exc:
                last_error = str(exc) or type(exc).__name__
            logger.debug(f"radio-browser request to {url} failed: {last_error}")
        raise UpstreamFetchError(last_error, url=last_url)

    async def list_countries(
        self, client: httpx.AsyncClient
    ) -> tuple[list[Country], RequestDescriptor]:
        response, url = await self._get(client, COUNTRIES_PATH)
        data = response.json()
        if not isinstance(data, list):
            raise UpstreamFetchError("Country listing is not a list", url=url)

        countries: dict[str, Country] = {}
        for entry in data:
            if not isinstance(entry, dict):
                continue
            code = str(entry.get("iso_3166_1") or "").strip().upper()
            if not code:
                continue
            count = entry.get("stationcount")
            if isinstance(count, int) and count <= 0:
                continue
            countries.setdefault(
                code,
                Country(
                    code=code,
                    name=(str(entry.get("name") or "").strip() or None),
                    station_count=count if isinstance(count, int) else None,
                ),
            )

        ordered = sorted(countries.values(), key=lambda c: c.code)
        return ordered, RequestDescriptor(url=url, count=len(ordered))

    def _page_params(self, page: int, fetched: int) -> dict[str, str]:
        params = dict(STATION_QUERY)
        page_limit = self.page_size
        if self.limit > 0:
            remaining = self.limit - fetched
            page_limit = min(page_limit, remaining) if page_limit > 0 else remaining
        if page_limit > 0:
            params["limit"] = str(page_limit)
        if self.page_size > 0:
            params["offset"] = str((page - 1) * self.page_size)
        return params

    async def fetch_country(
        self, client: httpx.AsyncClient, country: Country
    ) -> CountryFetch:
        """按页顺序抓取单个国家，失败时保留已抓到的页。"""
        result = CountryFetch(country=country)
        path = f"{STATIONS_BY_COUNTRY_PATH}/{country.code}"
        page = 1

        while True:
            params = self._page_params(page, len(result.records))
            try:
                response, url = await self._get(client, path, params)
                data = response.json()
                if not isinstance(data, list):
                    raise UpstreamFetchError("Station listing is not a list", url=url)
            except (UpstreamFetchError, ValueError) as exc:
                error = exc.message if isinstance(exc, UpstreamFetchError) else str(exc)
                result.requests.append(
                    RequestDescriptor(
                        url=getattr(exc, "url", None) or path,
                        country=country.code,
                        page=page,
                        status="error",
                        error=error,
                    )
                )
                BusinessEvents.country_fetch_failed(
                    country=country.code, page=page, error=error
                )
                break

            records = [entry for entry in data if isinstance(entry, dict)]
            result.records.extend(records)
            result.requests.append(
                RequestDescriptor(
                    url=url, country=country.code, page=page, count=len(records)
                )
            )

            if self.page_size <= 0 or len(data) < self.page_size:
                break
            if self.max_pages > 0 and page >= self.max_pages:
                break
            if self.limit > 0 and len(result.records) >= self.limit:
                break
            page += 1

        return result

    async def fetch_catalog(self) -> CatalogPayload:
        started = time.monotonic()
        async with self._client() as client:
            try:
                countries, countries_request = await self.list_countries(client)
            except (UpstreamFetchError, ValueError) as exc:
                raise EmptyCatalogError(f"Country listing failed: {exc}") from exc

            results = await bounded_gather(
                countries,
                lambda country: self.fetch_country(client, country),
                self.country_concurrency,
            )

        requests = [countries_request]
        records: list[dict[str, Any]] = []
        for result in results:
            requests.extend(result.requests)
            records.extend(result.records)

        payload = normalize(
            records,
            source=countries_request.url.split(COUNTRIES_PATH)[0],
            requests=requests,
        )
        if self.limit > 0 and payload.total > self.limit:
            payload = _truncate(payload, self.limit)

        if payload.total == 0:
            raise EmptyCatalogError()

        BusinessEvents.catalog_refreshed(
            total=payload.total,
            fingerprint=payload.fingerprint,
            duration_ms=int((time.monotonic() - started) * 1000),
            failed_requests=payload.failed_requests,
            countries=len(countries),
        )
        return payload

    async def record_click(self, station_id: str) -> None:
        async with self._client() as client:
            await self._get(client, f"{CLICK_PATH}/{station_id}")


def _truncate(payload: CatalogPayload, limit: int) -> CatalogPayload:
    """保留点击数最高的 limit 个电台。"""
    stations = sorted(payload.stations, key=lambda s: (-s.click_count, s.id))[:limit]
    return build_payload(
        stations,
        source=payload.source,
        requests=list(payload.requests),
        updated_at=payload.updated_at,
    )
