"""Station repository implementations."""

from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager
from typing import Any

from loguru import logger
from sqlalchemy import func, update
from sqlalchemy.dialects.postgresql import Insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from radio_service.core.infrastructure.database.session import get_async_session
from radio_service.modules.stations.domain.entities import CatalogPayload
from radio_service.modules.stations.domain.exceptions import PersistenceError
from radio_service.modules.stations.domain.repository import StationRepository
from radio_service.modules.stations.infrastructure.mappers import (
    STATION_COLUMNS,
    PayloadMapper,
    StationMapper,
)
from radio_service.modules.stations.infrastructure.models import (
    StationModel,
    StationPayloadModel,
    StationStateModel,
)

INSERT_BATCH_SIZE = 500
POSTGRES_TARGET = "postgres"

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def batched(rows: Sequence[dict[str, Any]], size: int) -> list[Sequence[dict[str, Any]]]:
    return [rows[start : start + size] for start in range(0, len(rows), size)]


def station_upsert(rows: Sequence[dict[str, Any]]) -> Insert:
    """批量 upsert 电台行。

    click_count 取上游值与本地值中的较大者，本地累加的点击不会被较旧的上游计数覆盖；
    click_trend 是上游的时间窗口指标，直接采用上游值。
    """
    statement = pg_insert(StationModel).values(list(rows))
    set_ = {
        column: statement.excluded[column]
        for column in ("payload_id", *STATION_COLUMNS)
    }
    set_["click_count"] = func.greatest(
        statement.excluded.click_count, StationModel.click_count
    )
    set_["updated_at"] = func.now()
    return statement.on_conflict_do_update(index_elements=["id"], set_=set_)


class PostgreSQLStationRepository(StationRepository):
    """PostgreSQL station repository implementation.

    payload 按指纹唯一：重复写入同一指纹（A -> B -> A）时复用历史行并重新指向它。
    旧 payload 行不会被删除。
    """

    def __init__(
        self,
        session_factory: SessionFactory = get_async_session,
        station_mapper: StationMapper | None = None,
        payload_mapper: PayloadMapper | None = None,
    ):
        self._session_factory = session_factory
        self.station_mapper = station_mapper or StationMapper()
        self.payload_mapper = payload_mapper or PayloadMapper()

    async def load_current(self) -> CatalogPayload | None:
        async with self._session_factory() as session:
            statement = (
                select(StationPayloadModel)
                .join(
                    StationStateModel,
                    StationStateModel.payload_id == StationPayloadModel.id,
                )
                .where(col(StationStateModel.id).is_(True))
            )
            result = await session.execute(statement)
            payload_model = result.scalar_one_or_none()
            if payload_model is None:
                return None

            stations_result = await session.execute(
                select(StationModel)
                .where(StationModel.payload_id == payload_model.id)
                .order_by(col(StationModel.click_count).desc(), col(StationModel.id))
            )
            stations = [
                self.station_mapper.to_domain(model)
                for model in stations_result.scalars().all()
            ]

        if not stations:
            logger.warning(
                f"Current payload {payload_model.id} has no station rows, ignoring"
            )
            return None
        return self.payload_mapper.to_domain(payload_model, stations)

    async def current_fingerprint(self) -> str | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(StationPayloadModel.fingerprint)
                .join(
                    StationStateModel,
                    StationStateModel.payload_id == StationPayloadModel.id,
                )
                .where(col(StationStateModel.id).is_(True))
            )
            return result.scalar_one_or_none()

    async def save_payload(self, payload: CatalogPayload) -> int:
        """写入 payload 与电台行并切换当前指针（单个事务）。

        Raises:
            PersistenceError: 数据库写入失败
        """
        try:
            payload_id = await self._save_payload(payload)
        except SQLAlchemyError as e:
            raise PersistenceError(POSTGRES_TARGET, str(e)) from e

        logger.info(
            f"Persisted payload {payload_id} ({payload.total} stations, "
            f"fingerprint {payload.fingerprint[:12]})"
        )
        return payload_id

    async def _save_payload(self, payload: CatalogPayload) -> int:
        payload_row = self.payload_mapper.to_row(payload)

        async with self._session_factory() as session:
            async with session.begin():
                payload_stmt = pg_insert(StationPayloadModel).values(**payload_row)
                payload_stmt = payload_stmt.on_conflict_do_update(
                    index_elements=["fingerprint"],
                    set_={
                        "schema_version": payload_stmt.excluded.schema_version,
                        "updated_at": payload_stmt.excluded.updated_at,
                        "source": payload_stmt.excluded.source,
                        "requests": payload_stmt.excluded.requests,
                        "total": payload_stmt.excluded.total,
                    },
                ).returning(StationPayloadModel.id)
                payload_id = (await session.execute(payload_stmt)).scalar_one()

                rows = [
                    self.station_mapper.to_row(station, payload_id)
                    for station in payload.stations
                ]
                for chunk in batched(rows, INSERT_BATCH_SIZE):
                    await session.execute(station_upsert(chunk))

                state_stmt = pg_insert(StationStateModel).values(
                    id=True, payload_id=payload_id, updated_at=func.now()
                )
                await session.execute(
                    state_stmt.on_conflict_do_update(
                        index_elements=["id"],
                        set_={
                            "payload_id": state_stmt.excluded.payload_id,
                            "updated_at": func.now(),
                        },
                    )
                )
        return payload_id

    async def increment_click(self, station_id: str) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(StationModel)
                    .where(StationModel.id == station_id)
                    .values(
                        click_count=StationModel.click_count + 1,
                        click_trend=StationModel.click_trend + 1,
                        updated_at=func.now(),
                    )
                )
        return (result.rowcount or 0) > 0
