"""
tests/test_migrator.py -- Tests for db/migrator.py.

Covers:
  - Discovery: numeric ordering, helper/unrelated files ignored
  - list_pending() is a dry run: no ledger table, no schema changes
  - apply_pending() runs each migration once; a second call is a no-op
  - Shipped migrations create users and sessions
  - A failing migration raises ServiceError; earlier ones stay applied and
    recorded, later ones are not attempted
"""

from __future__ import annotations

from pathlib import Path

import pytest

from core.errors import ServiceError
from db.database import Database
from db.migrator import Migrator, discover_migrations


def _write_migration(directory: Path, filename: str, body: str) -> None:
    (directory / filename).write_text(f"def up(connection):\n    {body}\n")


async def _table_names(database) -> set[str]:
    result = await database.query("SELECT name FROM sqlite_master WHERE type = 'table'")
    return {row["name"] for row in result.rows}


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def test_discovery_sorts_numerically(tmp_path):
    _write_migration(tmp_path, "10_second.py", "pass")
    _write_migration(tmp_path, "9_first.py", "pass")
    _write_migration(tmp_path, "100_third.py", "pass")
    assert [m.name for m in discover_migrations(tmp_path)] == ["9_first", "10_second", "100_third"]


def test_discovery_ignores_helpers_and_unrelated_files(tmp_path):
    _write_migration(tmp_path, "1_real.py", "pass")
    (tmp_path / "__init__.py").write_text("")
    (tmp_path / "_shared.py").write_text("")
    (tmp_path / "notes.py").write_text("")
    (tmp_path / "2_readme.txt").write_text("")
    assert [m.name for m in discover_migrations(tmp_path)] == ["1_real"]


def test_shipped_migrations_in_order(settings):
    names = [m.name for m in discover_migrations(Path(settings.migrations_dir))]
    assert names == ["1745000000000_create_users", "1745000000001_create_sessions"]


# ---------------------------------------------------------------------------
# Dry run
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_pending_on_fresh_database_writes_nothing(database, settings):
    migrator = Migrator(database, Path(settings.migrations_dir))

    pending = await migrator.list_pending()
    again = await migrator.list_pending()

    assert [m.name for m in pending] == ["1745000000000_create_users", "1745000000001_create_sessions"]
    assert again == pending
    assert await _table_names(database) == set()


# ---------------------------------------------------------------------------
# Real run
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_apply_pending_creates_schema_and_ledger(database, settings):
    migrator = Migrator(database, Path(settings.migrations_dir))

    applied = await migrator.apply_pending()

    assert [m.name for m in applied] == ["1745000000000_create_users", "1745000000001_create_sessions"]
    assert {"users", "sessions", "pgmigrations"} <= await _table_names(database)
    ledger = await database.query("SELECT name, run_on FROM pgmigrations ORDER BY id")
    assert [row["name"] for row in ledger.rows] == [m.name for m in applied]
    assert all(row["run_on"] is not None for row in ledger.rows)


@pytest.mark.asyncio
async def test_apply_pending_is_idempotent(database, settings):
    migrator = Migrator(database, Path(settings.migrations_dir))
    await migrator.apply_pending()

    assert await migrator.apply_pending() == []
    assert await migrator.list_pending() == []
    ledger = await database.query("SELECT count(*) AS n FROM pgmigrations")
    assert ledger.rows[0]["n"] == 2


@pytest.mark.asyncio
async def test_only_new_migrations_run(database, tmp_path):
    migrations_dir = tmp_path / "migrations"
    migrations_dir.mkdir()
    _write_migration(migrations_dir, "1_one.py", 'connection.exec_driver_sql("CREATE TABLE one (id INTEGER)")')
    migrator = Migrator(database, migrations_dir)
    await migrator.apply_pending()

    _write_migration(migrations_dir, "2_two.py", 'connection.exec_driver_sql("CREATE TABLE two (id INTEGER)")')

    assert [m.name for m in await migrator.list_pending()] == ["2_two"]
    assert [m.name for m in await migrator.apply_pending()] == ["2_two"]


@pytest.mark.asyncio
async def test_custom_ledger_table(database, tmp_path):
    migrations_dir = tmp_path / "migrations"
    migrations_dir.mkdir()
    _write_migration(migrations_dir, "1_one.py", "pass")

    await Migrator(database, migrations_dir, ledger_table="schema_history").apply_pending()

    assert "schema_history" in await _table_names(database)
    assert "pgmigrations" not in await _table_names(database)


# ---------------------------------------------------------------------------
# Failure
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_failed_migration_keeps_earlier_ones(database, tmp_path):
    migrations_dir = tmp_path / "migrations"
    migrations_dir.mkdir()
    _write_migration(migrations_dir, "1_ok.py", 'connection.exec_driver_sql("CREATE TABLE ok (id INTEGER)")')
    _write_migration(migrations_dir, "2_bad.py", 'raise RuntimeError("boom")')
    _write_migration(migrations_dir, "3_later.py", 'connection.exec_driver_sql("CREATE TABLE later (id INTEGER)")')
    migrator = Migrator(database, migrations_dir)

    with pytest.raises(ServiceError) as exc_info:
        await migrator.apply_pending()

    assert isinstance(exc_info.value.cause, RuntimeError)
    tables = await _table_names(database)
    assert "ok" in tables
    assert "later" not in tables
    assert [m.name for m in await migrator.list_pending()] == ["2_bad", "3_later"]


@pytest.mark.asyncio
async def test_migration_without_up_fails(database, tmp_path):
    migrations_dir = tmp_path / "migrations"
    migrations_dir.mkdir()
    (migrations_dir / "1_empty.py").write_text("VALUE = 1\n")

    with pytest.raises(ServiceError):
        await Migrator(database, migrations_dir).apply_pending()


@pytest.mark.asyncio
async def test_unreachable_database_is_service_error(settings_factory, tmp_path):
    database = Database(settings_factory("missing/dir/x.db"))
    try:
        with pytest.raises(ServiceError):
            await Migrator(database, tmp_path).list_pending()
    finally:
        await database.close()
