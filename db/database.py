"""
db/database.py -- Connection-per-operation data access for Bancarios.

Uses SQLAlchemy Core on the asyncio extension. The engine is built with
NullPool, so there is no pooling: every query() opens one physical
connection, runs one statement, and closes the connection again on every
exit path. Connection setup costs a round trip; in exchange there is no
shared connection state between requests to reason about.

Error translation: nothing raised by the driver leaves this module raw.
  IntegrityError on a unique index -> UniqueViolationError (a ServiceError)
  anything else                    -> ServiceError
The low-level exception is kept on `.cause` and chained with `raise from`
for logs and debuggers; AppError.to_dict() never renders it.

Security: callers pass SQLAlchemy constructs or text() with bound
parameters. No f-strings in SQL.

Usage:
    database = Database(settings)
    result = await database.query(text("SELECT 1 + 1 AS sum"))
    result.rows        # [{"sum": 2}]

    conn = await database.acquire_connection()   # caller owns the lifecycle
    try:
        async with conn.begin():
            ...
    finally:
        await conn.close()

Layer rule: imports from core/ only.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool
from sqlalchemy.sql import Executable

from core.config import Settings
from core.errors import ServiceError, UniqueViolationError

logger = logging.getLogger("bancarios.db")

# SQLSTATE for unique_violation in PostgreSQL.
_PG_UNIQUE_VIOLATION = "23505"


@dataclass
class QueryResult:
    """Rows returned by a statement plus the number of rows it touched.

    rows is empty for statements without a result set (UPDATE without
    RETURNING, DDL); row_count then carries the driver's rowcount.
    """

    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0


# ---------------------------------------------------------------------------
# Per-connection setup
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable foreign keys on every new SQLite connection.

    SQLite PRAGMAs are per-connection and NullPool hands out a fresh one for
    every query, so this has to run on each connect.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == _PG_UNIQUE_VIOLATION:
        return True
    return "UNIQUE constraint failed" in str(orig)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


class Database:
    """Entry point for every database round trip in the application.

    One instance per process, built from the Settings value at startup and
    passed by reference to the stores and the migrator.
    """

    def __init__(self, settings: Settings) -> None:
        url = settings.sqlalchemy_url
        self.backend: str = url.get_backend_name()
        connect_args: dict = {}
        if self.backend == "postgresql":
            connect_args["ssl"] = settings.ssl_policy
        self.engine: AsyncEngine = create_async_engine(url, poolclass=NullPool, connect_args=connect_args)
        if self.backend == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _set_sqlite_pragmas)

    async def query(self, statement: Executable | str, values: Mapping[str, Any] | None = None) -> QueryResult:
        """Run one statement on a fresh connection and return its rows.

        The statement runs inside a transaction that commits on success and
        rolls back on failure. The connection is closed in every case.

        Raises:
            UniqueViolationError: a unique index rejected the write.
            ServiceError: any other connection or execution failure.
        """
        if isinstance(statement, str):
            statement = text(statement)
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(statement, dict(values) if values else None)
                if result.returns_rows:
                    rows = [dict(row) for row in result.mappings().all()]
                    row_count = len(rows)
                else:
                    rows = []
                    row_count = result.rowcount
                await conn.commit()
        except IntegrityError as exc:
            if _is_unique_violation(exc):
                logger.warning("Unique constraint rejected write: %s", exc.orig)
                raise UniqueViolationError(
                    message="A record with the same unique value already exists.",
                    cause=exc,
                ) from exc
            logger.error("Integrity error during query: %s", exc.orig)
            raise ServiceError(message="Database connection or query failed.", cause=exc) from exc
        except Exception as exc:
            logger.error("Database query failed: %r", exc)
            raise ServiceError(message="Database connection or query failed.", cause=exc) from exc

        logger.debug("Query returned %d row(s)", row_count)
        return QueryResult(rows=rows, row_count=row_count)

    async def acquire_connection(self) -> AsyncConnection:
        """Open and return a connection the caller must close.

        For multi-statement work that needs explicit transaction control
        (the migrator). Nothing here closes the connection for you.

        Raises:
            ServiceError: the connection could not be established.
        """
        conn = self.engine.connect()
        try:
            await conn.start()
        except Exception as exc:
            logger.error("Could not open database connection: %r", exc)
            raise ServiceError(message="Could not connect to the database.", cause=exc) from exc
        return conn

    async def close(self) -> None:
        await self.engine.dispose()
