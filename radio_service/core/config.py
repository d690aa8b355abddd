"""Application configuration."""

from typing import Literal, Self
from urllib.parse import urlparse

from pydantic import Field, HttpUrl, computed_field, model_validator
from pydantic_core import MultiHostUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(RuntimeError):
    """配置无效（仅在启动阶段抛出，视为致命错误）。"""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Invalid configuration: " + "; ".join(problems))


def derive_metadata_key(object_key: str | None) -> str | None:
    """根据 catalog 对象 key 推导 metadata 对象 key。

    stations.json -> stations-metadata.json
    """
    if not object_key:
        return None
    key = object_key.strip()
    if not key:
        return None
    if key.endswith(".json"):
        key = key[: -len(".json")]
    return f"{key}-metadata.json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "radio-service"
    SERVER_PORT: int = 4010
    API_PREFIX: str = ""
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "UTC"
    ALLOW_INSECURE_TRANSPORT: bool = False

    # Sentry
    SENTRY_DSN: HttpUrl | None = None

    # PostgreSQL
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "radio"

    @computed_field
    @property
    def database_url_object(self) -> MultiHostUrl:
        return MultiHostUrl.build(
            scheme="postgresql+psycopg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        return str(self.database_url_object)

    # Redis / 缓存
    REDIS_URL: str = "redis://localhost:6379/0"
    STATIONS_CACHE_KEY: str = "radio:stations:all"
    STATIONS_CACHE_TTL: int = Field(default=900, gt=0)
    MEMORY_CACHE_MAX_ENTRIES: int = Field(default=64, gt=0)
    MEMORY_CACHE_TTL: int = Field(default=900, gt=0)
    CACHE_OPERATION_TIMEOUT_MS: int = Field(default=1500, gt=0)

    # Object store（S3 兼容，MinIO/Garage）
    MINIO_ENDPOINT: str | None = None
    MINIO_REGION: str = "garage"
    MINIO_ACCESS_KEY: str | None = None
    MINIO_SECRET_KEY: str | None = None
    MINIO_BUCKET: str | None = None
    STATIONS_OBJECT_KEY: str = "stations.json"
    STATIONS_METADATA_OBJECT_KEY: str | None = None
    STATIONS_BY_COUNTRY_PREFIX: str = "stations/by-country"
    S3_WRITE_CONCURRENCY: int = Field(default=5, gt=0)

    @computed_field
    @property
    def stations_metadata_key(self) -> str | None:
        """metadata 对象 key，未显式配置时从 STATIONS_OBJECT_KEY 推导。"""
        return self.STATIONS_METADATA_OBJECT_KEY or derive_metadata_key(
            self.STATIONS_OBJECT_KEY
        )

    # Radio Browser
    RADIO_BROWSER_BASE_URL: str = "https://de2.api.radio-browser.info"
    RADIO_BROWSER_USER_AGENT: str = "radio-service/1.0 (+https://gitgud.qzz.io)"
    RADIO_BROWSER_PAGE_SIZE: int = Field(default=0, ge=0)  # 0 = 不分页
    RADIO_BROWSER_MAX_PAGES: int = Field(default=0, ge=0)  # 0 = 不限页数
    RADIO_BROWSER_LIMIT: int = Field(default=0, ge=0)  # 0 = 不限总数
    RADIO_BROWSER_COUNTRY_CONCURRENCY: int = Field(default=4, gt=0)
    RADIO_BROWSER_TIMEOUT_MS: int = Field(default=15000, gt=0)

    # Stream validation
    STREAM_VALIDATION_ENABLED: bool = True
    STREAM_VALIDATION_TIMEOUT_MS: int = Field(default=5000, gt=0)
    STREAM_VALIDATION_CONCURRENCY: int = Field(default=8, gt=0)
    STREAM_VALIDATION_CACHE_KEY: str = "radio:streams:validated"
    STREAM_VALIDATION_CACHE_TTL: int = Field(default=86400, gt=0)

    # Stream proxy
    STREAM_PROXY_TIMEOUT_MS: int = Field(default=15000, gt=0)

    # API 分页
    API_DEFAULT_PAGE_SIZE: int = Field(default=50, gt=0)
    API_MAX_PAGE_SIZE: int = Field(default=100, gt=0)

    # Favorites
    FAVORITES_MAX_SLOTS: int = Field(default=6, gt=0)
    FAVORITES_TTL_SECONDS: int = Field(default=60 * 60 * 24 * 30, gt=0)  # 30 days

    # Refresh
    STATIONS_REFRESH_TOKEN: str = ""
    STATIONS_REFRESH_INTERVAL_SEC: int = Field(default=900, gt=0)

    # Celery Settings
    CELERY_BROKER_URL: str | None = None  # 默认使用 REDIS_URL
    CELERY_RESULT_BACKEND: str | None = None  # 默认使用 REDIS_URL
    CELERY_TASK_SERIALIZER: str = "json"
    CELERY_RESULT_SERIALIZER: str = "json"
    CELERY_ACCEPT_CONTENT: list[str] = ["json"]

    @computed_field
    @property
    def celery_broker_url(self) -> str:
        """获取 Celery Broker URL，默认使用 Redis URL。"""
        return self.CELERY_BROKER_URL or self.REDIS_URL

    @computed_field
    @property
    def celery_result_backend(self) -> str:
        """获取 Celery Result Backend URL，默认使用 Redis URL。"""
        return self.CELERY_RESULT_BACKEND or self.REDIS_URL

    @model_validator(mode="after")
    def _clamp_default_page_size(self) -> Self:
        if self.API_DEFAULT_PAGE_SIZE > self.API_MAX_PAGE_SIZE:
            raise ValueError("API_DEFAULT_PAGE_SIZE cannot exceed API_MAX_PAGE_SIZE")
        return self

    def collect_problems(self) -> list[str]:
        """收集所有运行期配置问题（跨字段校验）。"""
        problems: list[str] = []
        insecure_ok = self.ALLOW_INSECURE_TRANSPORT

        if not self.STATIONS_REFRESH_TOKEN.strip():
            problems.append(
                "STATIONS_REFRESH_TOKEN must be configured to protect the refresh endpoint"
            )

        if not self.REDIS_URL:
            problems.append("REDIS_URL must be provided so the service can populate the cache")
        else:
            scheme = urlparse(self.REDIS_URL).scheme
            if scheme not in ("redis", "rediss"):
                problems.append(f"Invalid REDIS_URL scheme: {scheme or 'missing'}")
            elif scheme != "rediss" and not insecure_ok:
                problems.append(
                    "REDIS_URL must use TLS (rediss://). "
                    "Set ALLOW_INSECURE_TRANSPORT=true to bypass in trusted environments"
                )

        if not self.MINIO_ACCESS_KEY or not self.MINIO_SECRET_KEY:
            problems.append("MINIO_ACCESS_KEY and MINIO_SECRET_KEY must be set")
        if not self.MINIO_BUCKET:
            problems.append("MINIO_BUCKET must be specified")
        if not self.MINIO_ENDPOINT:
            problems.append("MINIO_ENDPOINT must be provided")
        else:
            problems.extend(
                self._check_https("MINIO_ENDPOINT", self.MINIO_ENDPOINT, insecure_ok)
            )
        if not self.stations_metadata_key:
            problems.append(
                "STATIONS_METADATA_OBJECT_KEY (or a derivable STATIONS_OBJECT_KEY) must be set"
            )

        problems.extend(
            self._check_https(
                "RADIO_BROWSER_BASE_URL", self.RADIO_BROWSER_BASE_URL, insecure_ok
            )
        )
        if not self.RADIO_BROWSER_USER_AGENT.strip():
            problems.append("RADIO_BROWSER_USER_AGENT must not be blank")

        return problems

    def validate_runtime(self) -> None:
        """启动时校验配置，有问题直接抛出 ConfigError。"""
        problems = self.collect_problems()
        if problems:
            raise ConfigError(problems)

    @staticmethod
    def _check_https(name: str, value: str, insecure_ok: bool) -> list[str]:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            return [f"Invalid {name} provided: {value}"]
        if parsed.scheme != "https" and not insecure_ok:
            return [
                f"{name} must use HTTPS. "
                "Set ALLOW_INSECURE_TRANSPORT=true to bypass in trusted environments"
            ]
        return []


settings = Settings()
