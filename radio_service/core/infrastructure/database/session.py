"""Database session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from radio_service.core.config import settings
from radio_service.core.infrastructure.health import DatabaseHealthResult, HealthStatus

async_engine = create_async_engine(
    settings.SQLALCHEMY_DATABASE_URI,
    echo=False,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
)


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """获取异步数据库会话（上下文管理器版本）。

    用于非 FastAPI 依赖注入场景（如后台持久化任务、Celery 任务）。

    Usage:
        async with get_async_session() as session:
            # 使用 session
            await session.commit()
    """
    session = AsyncSession(async_engine, expire_on_commit=False)
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db() -> None:
    """Initialize database connection and apply pending migrations."""
    from radio_service.core.infrastructure.database.migrator import apply_migrations

    try:
        async with async_engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection established successfully")
    except Exception as e:
        logger.error(f"Failed to connect to database: {e}")
        raise

    applied = await apply_migrations(async_engine)
    if applied:
        logger.info(f"Applied migrations: {', '.join(applied)}")


async def check_db_health() -> DatabaseHealthResult:
    """检查数据库健康状态。

    1. PostgreSQL 连接状态
    2. 数据库版本信息
    3. 已执行的迁移数量
    """
    try:
        async with async_engine.connect() as conn:
            result = await conn.execute(text("SELECT version()"))
            version = result.scalar()

            migrations_result = await conn.execute(
                text("SELECT COUNT(*) FROM schema_migrations")
            )
            applied = migrations_result.scalar() or 0

            return DatabaseHealthResult(
                status=HealthStatus.OK,
                connected=True,
                version=version.split(",")[0] if version else "unknown",
                applied_migrations=int(applied),
            )
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return DatabaseHealthResult(
            status=HealthStatus.ERROR,
            connected=False,
            error=str(e),
        )
