"""统一的健康检查类型定义。"""

from enum import Enum

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """健康检查状态枚举。"""

    OK = "ok"
    ERROR = "error"
    SKIPPED = "skipped"
    DEGRADED = "degraded"


class DatabaseHealthResult(BaseModel):
    """数据库健康检查结果。"""

    status: HealthStatus = Field(..., description="健康状态")
    connected: bool = Field(..., description="是否已连接")
    version: str | None = Field(None, description="PostgreSQL 版本")
    applied_migrations: int = Field(0, description="已执行的迁移数量")
    error: str | None = Field(None, description="错误信息")

    def to_dict(self) -> dict[str, str | bool | int | None]:
        """转换为字典（用于 API 响应）。"""
        return self.model_dump(mode="json", exclude_none=False)


class RedisHealthResult(BaseModel):
    """Redis 健康检查结果。"""

    status: HealthStatus = Field(..., description="健康状态")
    connected: bool = Field(..., description="是否已连接")
    version: str | None = Field(None, description="Redis 版本")
    error: str | None = Field(None, description="错误信息")

    def to_dict(self) -> dict[str, str | bool | None]:
        """转换为字典（用于 API 响应）。"""
        return self.model_dump(mode="json", exclude_none=False)


class CatalogHealthResult(BaseModel):
    """电台目录健康检查结果。"""

    status: HealthStatus = Field(..., description="健康状态")
    total: int = Field(0, description="当前目录电台数")
    fingerprint: str | None = Field(None, description="当前目录指纹")
    updated_at: str | None = Field(None, description="目录更新时间")
    cache_source: str | None = Field(None, description="数据来源层")
    error: str | None = Field(None, description="错误信息")

    def to_dict(self) -> dict[str, str | int | None]:
        """转换为字典（用于 API 响应）。"""
        return self.model_dump(mode="json", exclude_none=False)
