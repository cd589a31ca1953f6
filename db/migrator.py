"""
db/migrator.py -- Ordered, idempotent schema migrations tracked in a ledger table.

A migration is a Python file in the migrations directory named
<identifier>_<description>.py, where <identifier> is an integer (a
millisecond timestamp in practice). It defines one function:

    def up(connection: sqlalchemy.engine.Connection) -> None: ...

which receives a synchronous Connection already inside a transaction.
Files whose names start with "_" are ignored (package __init__, helpers).

Ledger: the table named by Settings.migrations_table ("pgmigrations")
stores one row per applied migration (name, run_on). A migration is pending
when its name is not in the ledger.

Atomicity is per migration, not per batch: each migration runs in its own
transaction together with its ledger insert. If migration N fails, 1..N-1
stay committed and recorded, N is rolled back, and N+1.. are not attempted.
The failure surfaces as ServiceError.

Dry run (list_pending) never writes: when the ledger table does not exist
yet it is not created, and every migration is reported as pending.

Layer rule: imports from core/ and db/ only.
"""

from __future__ import annotations

import importlib.util
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from types import ModuleType

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, inspect, select
from sqlalchemy.ext.asyncio import AsyncConnection

from core.errors import ServiceError
from db.database import Database

logger = logging.getLogger("bancarios.migrator")

_MIGRATION_FILE_RE = re.compile(r"^(?P<identifier>\d+)_(?P<description>[\w-]+)\.py$")


@dataclass(frozen=True)
class Migration:
    """A migration file discovered on disk. name is the file stem."""

    identifier: int
    name: str
    path: Path


def _utcnow_naive() -> datetime:
    # run_on is TIMESTAMP WITHOUT TIME ZONE; asyncpg rejects aware values there.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _ledger_table(name: str) -> Table:
    return Table(
        name,
        MetaData(),
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("name", String(255), nullable=False),
        Column("run_on", DateTime, nullable=False),
    )


def discover_migrations(directory: Path) -> list[Migration]:
    """Return the migrations in directory, sorted by numeric identifier.

    Sorting is numeric, not lexical, so 9_x runs before 10_y. Ties on the
    identifier fall back to the file name to keep the order deterministic.
    """
    migrations = []
    for path in directory.glob("*.py"):
        if path.name.startswith("_"):
            continue
        match = _MIGRATION_FILE_RE.match(path.name)
        if match is None:
            logger.warning("Skipping %s: not named <identifier>_<description>.py", path.name)
            continue
        migrations.append(Migration(identifier=int(match["identifier"]), name=path.stem, path=path))
    return sorted(migrations, key=lambda m: (m.identifier, m.name))


def _load(migration: Migration) -> ModuleType:
    spec = importlib.util.spec_from_file_location(f"bancarios_migration_{migration.identifier}", migration.path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load migration {migration.name} from {migration.path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    if not callable(getattr(module, "up", None)):
        raise AttributeError(f"Migration {migration.name} does not define up(connection)")
    return module


class Migrator:
    """Applies pending migrations through the shared Database.

    Usage:
        migrator = Migrator(database, Path(settings.migrations_dir))
        pending = await migrator.list_pending()   # dry run
        applied = await migrator.apply_pending()  # real run
    """

    def __init__(self, database: Database, migrations_dir: Path, ledger_table: str = "pgmigrations") -> None:
        self._database = database
        self.migrations_dir = Path(migrations_dir)
        self._ledger = _ledger_table(ledger_table)

    async def list_pending(self) -> list[Migration]:
        """Return migrations not yet recorded in the ledger, in run order."""
        conn = await self._database.acquire_connection()
        try:
            applied = await self._applied_names(conn)
            return [m for m in discover_migrations(self.migrations_dir) if m.name not in applied]
        except Exception as exc:
            logger.error("Failed to list pending migrations: %r", exc)
            raise ServiceError(message="Failed to list pending migrations.", cause=exc) from exc
        finally:
            await conn.close()

    async def apply_pending(self) -> list[Migration]:
        """Run every pending migration, each in its own transaction.

        Returns the migrations that ran, in the order they ran. An empty list
        means the schema was already up to date.
        """
        conn = await self._database.acquire_connection()
        done: list[Migration] = []
        current: Migration | None = None
        try:
            await conn.run_sync(self._ledger.create, checkfirst=True)
            await conn.commit()
            applied = await self._applied_names(conn)
            await conn.commit()

            for migration in discover_migrations(self.migrations_dir):
                if migration.name in applied:
                    continue
                current = migration
                module = _load(migration)
                async with conn.begin():
                    await conn.run_sync(module.up)
                    await conn.execute(
                        self._ledger.insert().values(name=migration.name, run_on=_utcnow_naive())
                    )
                logger.info("Applied migration %s", migration.name)
                done.append(migration)
        except Exception as exc:
            failed = current.name if current is not None else "<ledger>"
            logger.error("Migration %s failed after %d applied: %r", failed, len(done), exc)
            raise ServiceError(message="Failed to run pending migrations.", cause=exc) from exc
        finally:
            await conn.close()

        if not done:
            logger.info("No pending migrations")
        return done

    async def _applied_names(self, conn: AsyncConnection) -> set[str]:
        exists = await conn.run_sync(lambda sync_conn: inspect(sync_conn).has_table(self._ledger.name))
        if not exists:
            return set()
        result = await conn.execute(select(self._ledger.c.name))
        return {row.name for row in result}
