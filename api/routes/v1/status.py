"""
api/routes/v1/status.py -- Liveness and database status.

Routes:
  GET /api/v1/status -- one database round trip plus server facts

Public: load balancers and readiness checks call this without credentials.
A database outage surfaces as the ServiceError from db.database (503).
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from api.models import DatabaseStatus, StatusResponse
from db.database import Database

router = APIRouter()


async def _database_status(database: Database) -> DatabaseStatus:
    if database.backend != "postgresql":
        result = await database.query("SELECT sqlite_version() AS version")
        return DatabaseStatus(backend=database.backend, version=result.rows[0]["version"])

    version = await database.query("SHOW server_version")
    max_connections = await database.query("SHOW max_connections")
    opened = await database.query(
        "SELECT count(*)::int AS opened FROM pg_stat_activity WHERE datname = :database_name",
        {"database_name": database.engine.url.database},
    )
    return DatabaseStatus(
        backend=database.backend,
        version=version.rows[0]["server_version"],
        max_connections=int(max_connections.rows[0]["max_connections"]),
        opened_connections=opened.rows[0]["opened"],
    )


@router.get("/status", response_model=StatusResponse)
async def status(request: Request) -> StatusResponse:
    """Return the current time and database status."""
    database: Database = request.app.state.database
    return StatusResponse(
        updated_at=datetime.now(timezone.utc),
        dependencies={"database": await _database_status(database)},
    )
