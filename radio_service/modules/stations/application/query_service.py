"""电台列表查询：过滤、搜索、排序与分页。"""

from collections import Counter
from collections.abc import Iterable

from radio_service.core.domain.exceptions import ValidationError
from radio_service.modules.stations.application.models import (
    LoadedCatalog,
    StationListMeta,
    StationListResult,
    StationQuery,
)
from radio_service.modules.stations.domain.entities import (
    Station,
    StreamValidationResult,
)
from radio_service.modules.stations.domain.repository import ValidationResultStore

LIMIT_ALL = "all"
MAX_GENRES = 200


def _norm(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip().lower()
    return text or None


def sort_stations(stations: Iterable[Station]) -> list[Station]:
    """点击数降序，相同时按 id 升序（稳定排序）。"""
    return sorted(stations, key=lambda station: (-station.click_count, station.id))


def collect_countries(stations: Iterable[Station]) -> list[str]:
    return sorted({station.country for station in stations if station.country})


def collect_genres(stations: Iterable[Station], limit: int = MAX_GENRES) -> list[str]:
    """按出现次数取前 limit 个标签，大小写合并时保留首次出现的写法。"""
    counts: Counter[str] = Counter()
    labels: dict[str, str] = {}
    for station in stations:
        for tag in station.tags:
            key = tag.strip().lower()
            if not key:
                continue
            labels.setdefault(key, tag.strip())
            counts[key] += 1
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [labels[key] for key, _ in ranked[:limit]]


class StationQueryService:
    """在内存目录快照上执行查询。"""

    def __init__(self, default_limit: int, max_limit: int):
        self.default_limit = default_limit
        self.max_limit = max_limit
        self._facets: tuple[str, list[str], list[str]] | None = None

    def resolve_limit(self, raw: str | None) -> tuple[int, int | str | None]:
        """解析 limit 参数。

        Returns:
            (实际 limit, 回显的 requestedLimit)
        """
        if raw is None or not raw.strip():
            return self.default_limit, None
        value = raw.strip().lower()
        if value == LIMIT_ALL:
            return self.max_limit, LIMIT_ALL
        try:
            requested = int(value)
        except ValueError as e:
            raise ValidationError("limit must be a number or 'all'") from e
        if requested <= 0:
            return self.default_limit, requested
        return min(requested, self.max_limit), requested

    @staticmethod
    def matches(station: Station, query: StationQuery) -> bool:
        country = _norm(query.country)
        if country is not None and country not in (
            _norm(station.country),
            _norm(station.country_code),
        ):
            return False

        language = _norm(query.language)
        if language is not None and language not in {
            lang.lower() for lang in station.languages
        }:
            return False

        tags = {tag.lower() for tag in station.tags}
        for wanted in (_norm(query.tag), _norm(query.genre)):
            if wanted is not None and wanted not in tags:
                return False

        search = _norm(query.search)
        if search is not None:
            haystack = [
                station.name,
                station.country or "",
                station.country_code or "",
                *station.tags,
                *station.languages,
            ]
            if not any(search in field.lower() for field in haystack):
                return False
        return True

    def facets(self, catalog: LoadedCatalog) -> tuple[list[str], list[str]]:
        """国家与流派列表（按目录指纹缓存）。"""
        fingerprint = catalog.payload.fingerprint
        if self._facets is None or self._facets[0] != fingerprint:
            stations = catalog.payload.stations
            self._facets = (
                fingerprint,
                collect_countries(stations),
                collect_genres(stations),
            )
        return self._facets[1], self._facets[2]

    async def query(
        self,
        catalog: LoadedCatalog,
        query: StationQuery,
        validation_store: ValidationResultStore | None = None,
    ) -> StationListResult:
        payload = catalog.payload
        limit, requested_limit = self.resolve_limit(query.limit)

        if query.offset is not None:
            offset = query.offset
        elif query.page is not None:
            offset = (query.page - 1) * limit
        else:
            offset = 0

        filtered = sort_stations(
            station for station in payload.stations if self.matches(station, query)
        )
        window = filtered[offset : offset + limit]

        validations: dict[str, StreamValidationResult] = {}
        if validation_store is not None and window:
            validations = await validation_store.get_many(
                [station.stream_url for station in window]
            )

        items = []
        for station in window:
            item = station.to_json_dict()
            result = validations.get(station.stream_url)
            if result is not None:
                item["isOnline"] = result.is_online
            items.append(item)

        countries, genres = self.facets(catalog)
        meta = StationListMeta(
            total=payload.total,
            filtered=len(filtered),
            matches=len(filtered),
            has_more=offset + len(window) < len(filtered),
            page=offset // limit + 1,
            limit=limit,
            max_limit=self.max_limit,
            requested_limit=requested_limit,
            offset=offset,
            cache_source=catalog.source,
            origin=payload.source,
            updated_at=payload.updated_at.isoformat(),
            countries=countries,
            genres=genres,
        )
        return StationListResult(meta=meta, items=items)
