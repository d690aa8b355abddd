"""Favorites repository interface."""

from abc import ABC, abstractmethod

from radio_service.modules.favorites.domain.entities import FavoritesDocument


class FavoritesRepository(ABC):
    """按会话读写收藏夹文档；每次读写都会续期。"""

    @abstractmethod
    async def load(self, session: str) -> FavoritesDocument:
        """读取会话的收藏夹，不存在时返回空文档。"""
        pass

    @abstractmethod
    async def save(self, session: str, document: FavoritesDocument) -> None:
        pass

    @abstractmethod
    async def touch(self, session: str) -> None:
        """续期会话的收藏夹。"""
        pass
