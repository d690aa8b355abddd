"""上游记录规范化、指纹计算与国家分组。"""

import hashlib
import json
import re
import unicodedata
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from radio_service.modules.stations.domain.entities import (
    STATIONS_SCHEMA_VERSION,
    CatalogPayload,
    Coordinates,
    CountryGroup,
    RequestDescriptor,
    Station,
)
from radio_service.modules.stations.domain.sanitize import (
    sanitize_stream_url,
    sanitize_web_url,
)

EMPTY_FINGERPRINT = "empty"
UNKNOWN_COUNTRY_SLUG = "unknown"

_COUNTRY_CODE_RE = re.compile(r"^[A-Za-z]{2,3}$")
_SLUG_INVALID_RE = re.compile(r"[^a-z0-9]+")


class DropReason:
    MISSING_ID = "missing_id"
    MISSING_NAME = "missing_name"
    MISSING_STREAM = "missing_stream_url"
    CHECK_FAILED = "last_check_failed"
    SSL_ERROR = "ssl_error"
    INVALID_STREAM = "invalid_stream_url"


@dataclass
class NormalizedStations:
    stations: list[Station] = field(default_factory=list)
    dropped: Counter[str] = field(default_factory=Counter)

    @property
    def dropped_total(self) -> int:
        return sum(self.dropped.values())


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_int(value: Any, default: int | None = None) -> int | None:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number


def split_list(value: Any) -> list[str]:
    """逗号分隔字符串 -> 去空白后的非空列表。"""
    if value is None:
        return []
    if isinstance(value, list | tuple):
        items = [str(item) for item in value if item is not None]
    else:
        items = str(value).split(",")
    return [item.strip() for item in items if item and item.strip()]


def _coordinates(lat: Any, lon: Any) -> Coordinates | None:
    lat_value = _as_float(lat)
    lon_value = _as_float(lon)
    if lat_value is None or lon_value is None:
        return None
    if not (-90 <= lat_value <= 90 and -180 <= lon_value <= 180):
        return None
    return Coordinates(lat=lat_value, lon=lon_value)


def _country_code(value: Any) -> str | None:
    code = _as_str(value)
    if code is None or not _COUNTRY_CODE_RE.match(code):
        return None
    return code.upper()


def normalize_station(raw: Mapping[str, Any]) -> tuple[Station | None, str | None]:
    """将单条 radio-browser 记录映射为 Station。

    Returns:
        (station, None) 或 (None, 丢弃原因)
    """
    station_id = _as_str(raw.get("stationuuid") or raw.get("id"))
    if station_id is None:
        return None, DropReason.MISSING_ID
    name = _as_str(raw.get("name"))
    if name is None:
        return None, DropReason.MISSING_NAME

    if _as_int(raw.get("lastcheckok"), 0) != 1:
        return None, DropReason.CHECK_FAILED
    if _as_int(raw.get("ssl_error"), 0) != 0:
        return None, DropReason.SSL_ERROR

    candidate = _as_str(raw.get("url_resolved")) or _as_str(raw.get("url"))
    if candidate is None:
        return None, DropReason.MISSING_STREAM
    stream_url = sanitize_stream_url(candidate)
    if stream_url is None:
        return None, DropReason.INVALID_STREAM

    bitrate = _as_int(raw.get("bitrate"))
    station = Station(
        id=station_id,
        name=name,
        stream_url=stream_url,
        homepage=sanitize_web_url(_as_str(raw.get("homepage"))),
        favicon=sanitize_web_url(_as_str(raw.get("favicon"))),
        country=_as_str(raw.get("country")),
        country_code=_country_code(raw.get("countrycode")),
        state=_as_str(raw.get("state")),
        languages=split_list(raw.get("language")),
        tags=split_list(raw.get("tags")),
        coordinates=_coordinates(raw.get("geo_lat"), raw.get("geo_long")),
        bitrate=bitrate if bitrate is not None and bitrate >= 0 else None,
        codec=_as_str(raw.get("codec")),
        hls=_as_int(raw.get("hls"), 0) == 1,
        is_online=True,
        last_checked_at=_as_str(
            raw.get("lastchecktime_iso8601") or raw.get("lastchecktime")
        ),
        last_changed_at=_as_str(
            raw.get("lastchangetime_iso8601") or raw.get("lastchangetime")
        ),
        click_count=_as_int(raw.get("clickcount"), 0) or 0,
        click_trend=_as_int(raw.get("clicktrend"), 0) or 0,
        votes=_as_int(raw.get("votes"), 0) or 0,
    )
    return station, None


def normalize_records(raw_records: Iterable[Mapping[str, Any]]) -> NormalizedStations:
    """规范化一批上游记录，按 id 去重（后写入者覆盖）。"""
    result = NormalizedStations()
    by_id: dict[str, Station] = {}
    for raw in raw_records:
        station, reason = normalize_station(raw)
        if station is None:
            result.dropped[reason or "unknown"] += 1
            continue
        by_id[station.id] = station
    result.stations = list(by_id.values())
    return result


def _station_digest(station: Station) -> str:
    canonical = json.dumps(
        station.to_json_dict(),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def build_fingerprint(stations: Iterable[Station]) -> str:
    """计算与输入顺序无关的目录指纹。

    对每个电台计算内容哈希，按 id 排序后拼接 "<id>:<hash>\\n" 再整体取 sha256。
    空目录返回 "empty"。
    """
    pairs = sorted((station.id, _station_digest(station)) for station in stations)
    if not pairs:
        return EMPTY_FINGERPRINT

    hasher = hashlib.sha256()
    for station_id, digest in pairs:
        hasher.update(f"{station_id}:{digest}\n".encode())
    return hasher.hexdigest()


def normalize(
    raw_records: Iterable[Mapping[str, Any]],
    *,
    source: str | None = None,
    requests: list[RequestDescriptor] | None = None,
    updated_at: datetime | None = None,
) -> CatalogPayload:
    """上游记录 -> CatalogPayload。

    Args:
        raw_records: radio-browser 原始记录
        source: 数据来源描述
        requests: 上游请求诊断记录
        updated_at: 快照时间，默认当前时间

    Returns:
        带指纹的目录快照
    """
    result = normalize_records(raw_records)
    if result.dropped_total:
        logger.info(
            f"Dropped {result.dropped_total} upstream records during normalization: "
            f"{dict(result.dropped)}"
        )
    return build_payload(
        result.stations,
        source=source,
        requests=requests,
        updated_at=updated_at,
    )


def build_payload(
    stations: list[Station],
    *,
    source: str | None = None,
    requests: list[RequestDescriptor] | None = None,
    updated_at: datetime | None = None,
) -> CatalogPayload:
    return CatalogPayload(
        schema_version=STATIONS_SCHEMA_VERSION,
        updated_at=updated_at or datetime.now(UTC),
        source=source,
        requests=requests or [],
        total=len(stations),
        fingerprint=build_fingerprint(stations),
        stations=stations,
    )


def slugify(value: str | None) -> str | None:
    """生成 URL 安全的 slug（去除变音符号，非字母数字替换为 "-"）。"""
    if not value:
        return None
    decomposed = unicodedata.normalize("NFKD", value)
    ascii_only = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = _SLUG_INVALID_RE.sub("-", ascii_only.lower()).strip("-")
    return slug or None


def country_slug(station: Station) -> str:
    if station.country_code:
        return station.country_code.lower()
    return slugify(station.country) or UNKNOWN_COUNTRY_SLUG


def build_country_groups(stations: Iterable[Station]) -> list[CountryGroup]:
    """按国家代码（或国家名 slug）分组，无法识别的归入 "unknown"。"""
    groups: dict[str, CountryGroup] = {}
    for station in stations:
        slug = country_slug(station)
        group = groups.get(slug)
        if group is None:
            group = CountryGroup(slug=slug)
            groups[slug] = group
        if group.name is None and station.country:
            group.name = station.country
        if group.code is None and station.country_code:
            group.code = station.country_code
        group.stations.append(station)
    return list(groups.values())


def payload_from_dict(data: Any) -> CatalogPayload | None:
    """从缓存 / 对象存储中的 JSON 恢复 CatalogPayload。

    缺失指纹时重新计算；total 与电台数不一致时以电台数为准。
    无法解析时返回 None。
    """
    if not isinstance(data, Mapping):
        return None
    body = dict(data)
    stations_raw = body.get("stations")
    if not isinstance(stations_raw, list):
        return None

    stations: list[Station] = []
    for raw in stations_raw:
        try:
            stations.append(Station.model_validate(raw))
        except ValueError as e:
            logger.debug(f"Skipping unreadable cached station: {e}")

    body["stations"] = stations
    body["total"] = len(stations)
    body["requests"] = [
        {"url": entry} if isinstance(entry, str) else entry
        for entry in body.get("requests") or []
        if isinstance(entry, str | Mapping)
    ]
    if not body.get("fingerprint"):
        body["fingerprint"] = build_fingerprint(stations)
    try:
        return CatalogPayload.model_validate(body)
    except ValueError as e:
        logger.warning(f"Failed to restore catalog payload: {e}")
        return None
