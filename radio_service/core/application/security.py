"""Application-level security dependencies.

- 刷新接口使用固定 Bearer token 保护
- 收藏夹使用客户端生成的会话 ID（X-Favorites-Session 请求头）
"""

import hmac
import re

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from radio_service.core.config import settings
from radio_service.core.domain.exceptions import AuthenticationError

FAVORITES_SESSION_HEADER = "X-Favorites-Session"
FAVORITES_SESSION_RE = re.compile(r"^[A-Za-z0-9_-]{16,128}$")

bearer_scheme = HTTPBearer(auto_error=False, description="Stations refresh token")


def verify_refresh_token(
    credentials: HTTPAuthorizationCredentials | None,
    expected: str | None = None,
) -> None:
    """校验刷新 token（常量时间比较）。

    Raises:
        AuthenticationError: 缺少或不匹配
    """
    token = (expected if expected is not None else settings.STATIONS_REFRESH_TOKEN).strip()
    if not token:
        raise AuthenticationError("Refresh is disabled: no refresh token configured")
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Missing bearer token")
    if not hmac.compare_digest(
        credentials.credentials.encode("utf-8"), token.encode("utf-8")
    ):
        raise AuthenticationError("Invalid refresh token")


async def get_refresh_credentials(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> HTTPAuthorizationCredentials | None:
    return credentials


async def get_favorites_session(
    session: str | None = Header(default=None, alias=FAVORITES_SESSION_HEADER),
) -> str:
    """读取并校验收藏夹会话 ID。"""
    if session is None or not FAVORITES_SESSION_RE.match(session):
        raise AuthenticationError(
            f"{FAVORITES_SESSION_HEADER} header is missing or invalid"
        )
    return session
