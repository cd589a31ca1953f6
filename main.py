#!/usr/bin/env python3
"""
Bancarios -- command-line entry point.

Usage:
  python main.py migrate --list      # show pending migrations, change nothing
  python main.py migrate --apply     # apply pending migrations
  python main.py serve               # run the HTTP API with uvicorn
  python main.py serve --port 8080 --reload

Configuration comes from the environment (or a .env file) -- see
core/config.py: POSTGRES_HOST, POSTGRES_PORT, POSTGRES_USER,
POSTGRES_PASSWORD, POSTGRES_DB, POSTGRES_CA, ENVIRONMENT, DATABASE_URL.

Exit status is 1 when the database or a migration fails.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import uvicorn

from core.config import Settings, get_settings
from core.errors import ServiceError
from db.database import Database
from db.migrator import Migration, Migrator


def _print_migrations(title: str, migrations: list[Migration]) -> None:
    if not migrations:
        print(f"  {title}: none")
        return
    print(f"  {title}:")
    for migration in migrations:
        print(f"    - {migration.name}")


async def _migrate(settings: Settings, apply: bool) -> list[Migration]:
    database = Database(settings)
    try:
        migrator = Migrator(database, Path(settings.migrations_dir), settings.migrations_table)
        return await migrator.apply_pending() if apply else await migrator.list_pending()
    finally:
        await database.close()


def _run_migrate(args: argparse.Namespace, settings: Settings) -> int:
    try:
        migrations = asyncio.run(_migrate(settings, apply=args.apply))
    except ServiceError as exc:
        print(f"  [!] {exc.message} {exc.action}")
        logging.getLogger("bancarios.cli").debug("Cause: %r", exc.cause)
        return 1
    _print_migrations("Applied" if args.apply else "Pending", migrations)
    return 0


def _run_serve(args: argparse.Namespace, settings: Settings) -> int:
    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="bancarios",
        description="Accounts, sessions and schema migrations.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py migrate --list
  python main.py migrate --apply
  ENVIRONMENT=production POSTGRES_PASSWORD=... python main.py migrate --apply
  python main.py serve --host 0.0.0.0 --port 3000
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    subcommands = parser.add_subparsers(dest="command", required=True)

    migrate = subcommands.add_parser("migrate", help="List or apply schema migrations")
    mode = migrate.add_mutually_exclusive_group(required=True)
    mode.add_argument("--list", action="store_true", help="Show pending migrations without applying them")
    mode.add_argument("--apply", action="store_true", help="Apply every pending migration")

    serve = subcommands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=3000, help="Port (default: 3000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    settings = get_settings()
    if args.command == "migrate":
        sys.exit(_run_migrate(args, settings))
    sys.exit(_run_serve(args, settings))


if __name__ == "__main__":
    main()
