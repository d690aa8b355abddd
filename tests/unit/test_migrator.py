"""Tests for the SQL file migrator."""

from contextlib import asynccontextmanager
from unittest.mock import MagicMock

import pytest

from radio_service.core.infrastructure.database.migrator import (
    MIGRATIONS_DIR,
    apply_migrations,
    discover_migrations,
    split_statements,
)

pytestmark = pytest.mark.anyio


class FakeConnection:
    def __init__(self, engine: "FakeEngine"):
        self.engine = engine

    async def execute(self, statement, params=None):
        sql = str(statement)
        self.engine.executed.append((sql, params))
        result = MagicMock()
        if sql.startswith("SELECT version"):
            result.all.return_value = [(version,) for version in self.engine.applied]
        if sql.startswith("INSERT INTO schema_migrations"):
            self.engine.applied.add(params["version"])
        return result


class FakeEngine:
    def __init__(self, applied: set[str] | None = None):
        self.applied = set(applied or ())
        self.executed: list[tuple[str, dict | None]] = []
        self.transactions = 0

    @asynccontextmanager
    async def begin(self):
        self.transactions += 1
        yield FakeConnection(self)


def test_split_statements_ignores_comments_and_blanks() -> None:
    sql = """
    -- stations table
    CREATE TABLE a (id INT);

    ;
    CREATE INDEX a_idx ON a (id);
    """

    assert split_statements(sql) == [
        "CREATE TABLE a (id INT)",
        "CREATE INDEX a_idx ON a (id)",
    ]


def test_discover_migrations_sorted_by_name(tmp_path) -> None:
    (tmp_path / "0002_second.sql").write_text("SELECT 2;")
    (tmp_path / "0001_first.sql").write_text("SELECT 1;")
    (tmp_path / "notes.txt").write_text("ignored")

    versions = [migration.version for migration in discover_migrations(tmp_path)]

    assert versions == ["0001_first", "0002_second"]


def test_bundled_migrations_are_present() -> None:
    migrations = discover_migrations(MIGRATIONS_DIR)

    assert [m.version[:4] for m in migrations] == ["0001", "0002"]
    assert all(migration.statements() for migration in migrations)


async def test_apply_migrations_runs_pending_only(tmp_path) -> None:
    (tmp_path / "0001_first.sql").write_text("CREATE TABLE a (id INT);")
    (tmp_path / "0002_second.sql").write_text("CREATE TABLE b (id INT);")
    engine = FakeEngine(applied={"0001_first"})

    applied = await apply_migrations(engine, tmp_path)

    assert applied == ["0002_second"]
    statements = [sql for sql, _ in engine.executed]
    assert "CREATE TABLE b (id INT)" in statements
    assert "CREATE TABLE a (id INT)" not in statements


async def test_apply_migrations_is_idempotent(tmp_path) -> None:
    (tmp_path / "0001_first.sql").write_text("CREATE TABLE a (id INT);")
    engine = FakeEngine()

    assert await apply_migrations(engine, tmp_path) == ["0001_first"]
    assert await apply_migrations(engine, tmp_path) == []
