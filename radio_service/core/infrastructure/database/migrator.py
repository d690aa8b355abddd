"""SQL 文件迁移执行器。

迁移文件位于 migrations/ 目录，命名为 NNNN_description.sql，按文件名顺序执行。
每个文件在独立事务中执行，并写入 schema_migrations 表；已记录的版本直接跳过。
"""

from dataclasses import dataclass
from pathlib import Path

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

CREATE_MIGRATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS schema_migrations (
  version TEXT PRIMARY KEY,
  applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""


@dataclass(frozen=True)
class Migration:
    """单个迁移文件。"""

    version: str
    path: Path

    def statements(self) -> list[str]:
        return split_statements(self.path.read_text(encoding="utf-8"))


def split_statements(sql: str) -> list[str]:
    """按语句拆分 SQL 文本（忽略 -- 注释行与空语句）。"""
    lines = [
        line for line in sql.splitlines() if not line.strip().startswith("--")
    ]
    statements = []
    for chunk in "\n".join(lines).split(";"):
        statement = chunk.strip()
        if statement:
            statements.append(statement)
    return statements


def discover_migrations(directory: Path = MIGRATIONS_DIR) -> list[Migration]:
    """列出目录下的迁移文件，版本号取文件名（不含扩展名）。"""
    return [
        Migration(version=path.stem, path=path)
        for path in sorted(directory.glob("*.sql"), key=lambda p: p.name)
    ]


async def load_applied_versions(engine: AsyncEngine) -> set[str]:
    async with engine.begin() as conn:
        await conn.execute(text(CREATE_MIGRATIONS_TABLE))
        result = await conn.execute(text("SELECT version FROM schema_migrations"))
        return {row[0] for row in result.all()}


async def apply_migrations(
    engine: AsyncEngine,
    directory: Path = MIGRATIONS_DIR,
) -> list[str]:
    """执行所有未记录的迁移。

    Args:
        engine: 异步数据库引擎
        directory: 迁移文件目录

    Returns:
        本次新执行的迁移版本列表
    """
    applied = await load_applied_versions(engine)
    newly_applied: list[str] = []

    for migration in discover_migrations(directory):
        if migration.version in applied:
            continue

        logger.info(f"Applying migration {migration.version}")
        async with engine.begin() as conn:
            for statement in migration.statements():
                await conn.execute(text(statement))
            await conn.execute(
                text("INSERT INTO schema_migrations (version) VALUES (:version)"),
                {"version": migration.version},
            )
        newly_applied.append(migration.version)

    return newly_applied
