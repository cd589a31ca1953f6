"""
tests/conftest.py -- Shared fixtures for the Bancarios test suite.

This module provides:
  - settings_factory:    builds test Settings for a named file under tmp_path
  - settings:            test Settings pointing at a fresh SQLite file per test
  - database:            Database built from those settings (engine disposed after)
  - migrated_database:   same, with the real migrations applied
  - hasher / users / sessions / authenticator: the auth components on top
  - api_client:          TestClient with a patched lifespan wired to a test DB

Design: a file-backed SQLite database (not :memory:) is required because
Database uses NullPool -- every query opens a new connection, and each new
connection to ":memory:" would see a blank database. tmp_path gives every
test its own file, so tests never share rows.

The schema is created by db.migrator, not metadata.create_all(), so every
test that touches users or sessions also exercises the migrations.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from pathlib import Path

# Set before any core import so a stray .env or shell ENVIRONMENT=production
# cannot switch the suite to production bcrypt cost.
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from api.main import app, install_components
from auth.authentication import Authenticator
from auth.password import PasswordHasher
from auth.sessions import SessionStore
from auth.store import UserStore
from core.config import Settings
from db.database import Database
from db.migrator import Migrator

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_settings(db_path: Path, **overrides) -> Settings:
    """Build test Settings for a SQLite file, ignoring any .env on disk."""
    values = {
        "environment": "test",
        "database_url": f"sqlite+aiosqlite:///{db_path}",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings_factory(tmp_path: Path):
    """Return a callable building Settings for a file under tmp_path."""

    def factory(name: str = "bancarios_test.db", **overrides) -> Settings:
        return make_settings(tmp_path / name, **overrides)

    return factory


@pytest.fixture
def settings(settings_factory) -> Settings:
    return settings_factory()


@pytest_asyncio.fixture
async def database(settings: Settings):
    db = Database(settings)
    yield db
    await db.close()


@pytest_asyncio.fixture
async def migrated_database(database: Database, settings: Settings) -> Database:
    await Migrator(database, Path(settings.migrations_dir), settings.migrations_table).apply_pending()
    return database


@pytest.fixture
def hasher(settings: Settings) -> PasswordHasher:
    return PasswordHasher.from_settings(settings)


@pytest.fixture
def users(migrated_database: Database, hasher: PasswordHasher) -> UserStore:
    return UserStore(migrated_database, hasher)


@pytest.fixture
def sessions(migrated_database: Database) -> SessionStore:
    return SessionStore(migrated_database)


@pytest.fixture
def authenticator(users: UserStore, hasher: PasswordHasher) -> Authenticator:
    return Authenticator(users, hasher)


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(settings: Settings):
    """Return a lifespan that wires test components and migrates the test DB.

    Runs inside the TestClient's event loop, so the migrations and every
    request share one loop.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        install_components(app, settings)
        await app.state.migrator.apply_pending()
        yield
        await app.state.database.close()

    return test_lifespan


@pytest.fixture
def api_client(tmp_path: Path) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app and a freshly migrated database.

    Function-scoped: the client keeps cookies between requests, and session
    tests rely on starting without one.
    """
    settings = make_settings(tmp_path / "bancarios_api.db")
    app.router.lifespan_context = _patch_lifespan(settings)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
