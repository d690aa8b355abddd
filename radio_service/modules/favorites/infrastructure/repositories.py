"""Redis-backed favorites repository."""

from loguru import logger

from radio_service.core.infrastructure.redis import RedisClient, RedisKeys
from radio_service.modules.favorites.domain.entities import (
    FavoritesDocument,
    load_document,
)
from radio_service.modules.favorites.domain.repository import FavoritesRepository


class RedisFavoritesRepository(FavoritesRepository):
    """每个会话一个 JSON 文档，key 为 radio:favorites:client:<session>。"""

    def __init__(self, client: RedisClient, ttl_seconds: int, max_slots: int):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.max_slots = max_slots

    async def load(self, session: str) -> FavoritesDocument:
        key = RedisKeys.favorites(session)
        try:
            raw = await self.client.get_json(key)
        except ValueError as e:
            logger.warning(f"Discarding unreadable favorites document {key}: {e}")
            raw = None
        return load_document(raw, self.max_slots)

    async def save(self, session: str, document: FavoritesDocument) -> None:
        await self.client.set_json(
            RedisKeys.favorites(session),
            document.to_json_dict(),
            ex=self.ttl_seconds,
        )

    async def touch(self, session: str) -> None:
        await self.client.expire(RedisKeys.favorites(session), self.ttl_seconds)
