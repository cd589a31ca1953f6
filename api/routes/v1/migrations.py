"""
api/routes/v1/migrations.py -- Schema migration endpoints.

Routes:
  GET  /api/v1/migrations -- pending migrations (dry run, never writes)
  POST /api/v1/migrations -- apply pending; 201 if anything ran, else 200

Deployment pipelines call POST once per release; calling it again is a no-op.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import MigrationResponse
from db.migrator import Migration, Migrator

router = APIRouter()


def _serialize(migrations: list[Migration]) -> list[dict]:
    return [MigrationResponse(name=m.name, path=str(m.path)).model_dump() for m in migrations]


@router.get("/migrations", response_model=list[MigrationResponse])
async def list_migrations(request: Request) -> JSONResponse:
    migrator: Migrator = request.app.state.migrator
    pending = await migrator.list_pending()
    return JSONResponse(status_code=200, content=_serialize(pending))


@router.post("/migrations", response_model=list[MigrationResponse])
async def run_migrations(request: Request) -> JSONResponse:
    """Apply every pending migration. The status code says whether any ran."""
    migrator: Migrator = request.app.state.migrator
    applied = await migrator.apply_pending()
    return JSONResponse(status_code=201 if applied else 200, content=_serialize(applied))
