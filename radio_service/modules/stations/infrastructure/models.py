"""Station database models（表结构由 SQL 迁移文件维护）。"""

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Identity, Integer, Text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlmodel import Field, SQLModel


class StationPayloadModel(SQLModel, table=True):
    """一次目录快照（追加式历史）。"""

    __tablename__ = "station_payloads"

    id: int | None = Field(
        default=None,
        sa_column=Column(BigInteger, Identity(always=False), primary_key=True),
    )
    schema_version: str = Field(sa_type=Text, nullable=False)
    updated_at: datetime = Field(sa_type=DateTime(timezone=True), nullable=False)
    source: str | None = Field(default=None, sa_type=Text, nullable=True)
    requests: list[dict[str, Any]] = Field(
        default_factory=list, sa_type=JSONB, nullable=False
    )
    total: int = Field(sa_type=Integer, nullable=False)
    fingerprint: str = Field(sa_type=Text, nullable=False, unique=True)
    created_at: datetime | None = Field(
        default=None, sa_type=DateTime(timezone=True), nullable=False
    )


class StationStateModel(SQLModel, table=True):
    """单行的当前 payload 指针。"""

    __tablename__ = "station_state"

    id: bool = Field(default=True, sa_column=Column(Boolean, primary_key=True))
    payload_id: int | None = Field(default=None, sa_type=BigInteger, nullable=True)
    updated_at: datetime | None = Field(
        default=None, sa_type=DateTime(timezone=True), nullable=False
    )


class StationModel(SQLModel, table=True):
    __tablename__ = "stations"

    id: str = Field(sa_column=Column(Text, primary_key=True))
    payload_id: int = Field(sa_type=BigInteger, nullable=False, index=True)
    name: str = Field(sa_type=Text, nullable=False)
    stream_url: str = Field(sa_type=Text, nullable=False)
    homepage: str | None = Field(default=None, sa_type=Text)
    favicon: str | None = Field(default=None, sa_type=Text)
    country: str | None = Field(default=None, sa_type=Text)
    country_code: str | None = Field(default=None, sa_type=Text)
    state: str | None = Field(default=None, sa_type=Text)
    languages: list[str] = Field(
        default_factory=list, sa_column=Column(ARRAY(Text), nullable=False)
    )
    tags: list[str] = Field(
        default_factory=list, sa_column=Column(ARRAY(Text), nullable=False)
    )
    coordinates: dict[str, float] | None = Field(default=None, sa_type=JSONB)
    bitrate: int | None = Field(default=None, sa_type=Integer)
    codec: str | None = Field(default=None, sa_type=Text)
    hls: bool = Field(default=False, nullable=False)
    is_online: bool = Field(default=False, nullable=False)
    last_checked_at: str | None = Field(default=None, sa_type=Text)
    last_changed_at: str | None = Field(default=None, sa_type=Text)
    click_count: int = Field(default=0, nullable=False)
    click_trend: int = Field(default=0, nullable=False)
    votes: int = Field(default=0, nullable=False)
    created_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    updated_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
