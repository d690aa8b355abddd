"""S3 兼容对象存储（MinIO / Garage）适配器。

对象布局：
- stations.json: 完整目录
- stations-metadata.json: 不含 stations 的元数据
- stations/by-country/<slug>.json: 按国家分片
"""

from __future__ import annotations

import json
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

import aioboto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from radio_service.core.config import settings
from radio_service.modules.stations.domain.entities import (
    CatalogPayload,
    CountryGroup,
)
from radio_service.modules.stations.domain.normalizer import payload_from_dict
from radio_service.modules.stations.domain.repository import CatalogObjectStore

JSON_CONTENT_TYPE = "application/json"
MISSING_OBJECT_CODES = {"NoSuchKey", "404", "NotFound"}

ClientFactory = Callable[[], AbstractAsyncContextManager[Any]]


def _encode(body: dict[str, Any]) -> bytes:
    return json.dumps(body, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


class S3ObjectStore(CatalogObjectStore):
    """基于 aioboto3 的目录对象存储。"""

    def __init__(
        self,
        bucket: str,
        catalog_key: str,
        metadata_key: str,
        shard_prefix: str,
        client_factory: ClientFactory,
    ):
        self.bucket = bucket
        self.catalog_key = catalog_key
        self.metadata_key = metadata_key
        self.shard_prefix = shard_prefix.strip("/")
        self._client_factory = client_factory

    @classmethod
    def from_settings(cls) -> S3ObjectStore:
        session = aioboto3.Session()

        def client_factory() -> AbstractAsyncContextManager[Any]:
            return session.client(
                "s3",
                endpoint_url=settings.MINIO_ENDPOINT,
                region_name=settings.MINIO_REGION,
                aws_access_key_id=settings.MINIO_ACCESS_KEY,
                aws_secret_access_key=settings.MINIO_SECRET_KEY,
                config=Config(s3={"addressing_style": "path"}),
            )

        return cls(
            bucket=settings.MINIO_BUCKET or "",
            catalog_key=settings.STATIONS_OBJECT_KEY,
            metadata_key=settings.stations_metadata_key or "",
            shard_prefix=settings.STATIONS_BY_COUNTRY_PREFIX,
            client_factory=client_factory,
        )

    def shard_key(self, slug: str) -> str:
        return f"{self.shard_prefix}/{slug}.json"

    @retry(
        retry=retry_if_exception_type((ClientError, BotoCoreError, OSError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _put_json(self, key: str, body: dict[str, Any]) -> None:
        async with self._client_factory() as client:
            await client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=_encode(body),
                ContentType=JSON_CONTENT_TYPE,
            )

    async def _get_json(self, key: str) -> Any | None:
        async with self._client_factory() as client:
            try:
                response = await client.get_object(Bucket=self.bucket, Key=key)
            except ClientError as e:
                code = str(e.response.get("Error", {}).get("Code", ""))
                if code in MISSING_OBJECT_CODES:
                    return None
                raise
            async with response["Body"] as stream:
                raw = await stream.read()
        return json.loads(raw)

    async def load_catalog(self) -> CatalogPayload | None:
        data = await self._get_json(self.catalog_key)
        if data is None:
            logger.info(f"Object store has no catalog at {self.catalog_key}")
            return None
        return payload_from_dict(data)

    async def put_catalog(self, payload: CatalogPayload) -> None:
        await self._put_json(self.catalog_key, payload.to_json_dict())

    async def put_metadata(self, payload: CatalogPayload) -> None:
        await self._put_json(self.metadata_key, payload.metadata_dict())

    async def put_country_shard(self, group: CountryGroup) -> None:
        await self._put_json(self.shard_key(group.slug), group.to_shard_dict())
