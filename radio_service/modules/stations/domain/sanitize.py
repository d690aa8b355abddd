"""电台 URL 清洗。

- 去除首尾空白，"//host" 补全为 https
- http 一律升级为 https，其它协议拒绝
- 流地址额外拦截内网/保留地址与本地域名
"""

from ipaddress import IPv4Address, IPv6Address, ip_address
from urllib.parse import urlsplit, urlunsplit

BLOCKED_HOSTNAMES = frozenset({"localhost", "localhost."})
BLOCKED_SUFFIXES = (
    ".localhost",
    ".localhost.",
    ".local",
    ".localdomain",
    ".home",
    ".home.arpa",
    ".internal",
    ".intranet",
)


def _is_blocked_ip(value: IPv4Address | IPv6Address) -> bool:
    if isinstance(value, IPv6Address) and value.ipv4_mapped is not None:
        value = value.ipv4_mapped
    return (
        value.is_private
        or value.is_loopback
        or value.is_link_local
        or value.is_reserved
        or value.is_multicast
        or value.is_unspecified
        or not value.is_global
    )


def is_blocked_host(host: str | None) -> bool:
    """判断主机名是否指向本地或内网。"""
    if not host:
        return True
    normalized = host.strip("[]").lower()
    if not normalized:
        return True
    if normalized in BLOCKED_HOSTNAMES:
        return True
    if normalized.endswith(BLOCKED_SUFFIXES):
        return True

    try:
        ip_value = ip_address(normalized)
    except ValueError:
        # 单标签主机名（无点号）只可能在内网解析
        return "." not in normalized
    return _is_blocked_ip(ip_value)


def _sanitize(raw_url: str | None, block_private_hosts: bool) -> str | None:
    if raw_url is None:
        return None
    trimmed = raw_url.strip()
    if not trimmed:
        return None
    if trimmed.startswith("//"):
        trimmed = f"https:{trimmed}"

    try:
        parts = urlsplit(trimmed)
        host = parts.hostname
        _ = parts.port  # 非法端口会抛出 ValueError
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if scheme not in ("http", "https"):
        return None
    if not host:
        return None
    if block_private_hosts and is_blocked_host(host):
        return None

    return urlunsplit(parts._replace(scheme="https"))


def sanitize_stream_url(raw_url: str | None) -> str | None:
    """清洗流地址；无效或指向内网时返回 None。"""
    return _sanitize(raw_url, block_private_hosts=True)


def sanitize_web_url(raw_url: str | None) -> str | None:
    """清洗主页 / 图标地址（不做内网拦截）。"""
    return _sanitize(raw_url, block_private_hosts=False)
