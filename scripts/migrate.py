#!/usr/bin/env python3
"""执行数据库迁移。

使用方式：
    python scripts/migrate.py
"""

import asyncio

from loguru import logger

from radio_service.core.infrastructure.database.migrator import apply_migrations
from radio_service.core.infrastructure.database.session import async_engine
from radio_service.core.infrastructure.logging import setup_logging


async def main() -> None:
    setup_logging()
    try:
        applied = await apply_migrations(async_engine)
    finally:
        await async_engine.dispose()

    if applied:
        logger.info(f"Applied migrations: {', '.join(applied)}")
    else:
        logger.info("Database schema is up to date")


if __name__ == "__main__":
    asyncio.run(main())
