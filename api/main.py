"""
api/main.py -- FastAPI application entry point for Bancarios.

Thin HTTP boundary around the auth core: it wires components together at
startup, routes requests to them, and renders their errors. It holds no
business rule of its own.

Run with:  uvicorn api.main:app --reload
           python main.py serve

Lifespan builds every component once from a single Settings value and
stores it on app.state; route handlers read from there. Shutdown disposes
of the database engine.

Error rendering: every response body for a failure is AppError.to_dict()
({name, message, action, status_code}). Errors that are not AppErrors are
wrapped in InternalServerError. The low-level cause is logged, never sent.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.routes.v1.migrations import router as migrations_router
from api.routes.v1.sessions import router as sessions_router
from api.routes.v1.status import router as status_router
from api.routes.v1.users import router as users_router
from auth.authentication import Authenticator
from auth.password import PasswordHasher
from auth.sessions import SessionStore
from auth.store import UserStore
from core.config import Settings, get_settings
from core.errors import (
    AppError,
    InternalServerError,
    MethodNotAllowedError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from db.database import Database
from db.migrator import Migrator

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("bancarios.api")

# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def install_components(app: FastAPI, settings: Settings) -> None:
    """Build every component from settings and attach it to app.state.

    Construction order follows the dependency graph: Database first, then
    the hasher, the stores that need both, and the authenticator on top.
    """
    database = Database(settings)
    hasher = PasswordHasher.from_settings(settings)
    users = UserStore(database, hasher)

    app.state.settings = settings
    app.state.database = database
    app.state.migrator = Migrator(database, Path(settings.migrations_dir), settings.migrations_table)
    app.state.users = users
    app.state.sessions = SessionStore(database)
    app.state.authenticator = Authenticator(users, hasher)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build components on startup; dispose of the engine on shutdown."""
    settings = get_settings()
    install_components(app, settings)
    logger.info(
        "Bancarios API starting up (environment=%s, database=%s)",
        settings.environment,
        app.state.database.backend,
    )

    yield

    await app.state.database.close()
    logger.info("Bancarios API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Bancarios API",
    description="Accounts, sessions and schema migrations.",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(status_router, prefix="/api/v1", tags=["Status"])
app.include_router(migrations_router, prefix="/api/v1", tags=["Migrations"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(sessions_router, prefix="/api/v1", tags=["Sessions"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same four-field body so clients can parse errors
# uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _render(error: AppError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as-is. Infrastructure failures are logged with their cause."""
    if isinstance(exc, ServiceError):
        logger.error(
            "%s on %s %s: %s (cause: %r)",
            exc.name,
            request.method,
            request.url.path,
            exc.message,
            exc.cause,
        )
    return _render(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and parameters are client-correctable: 400 ValidationError."""
    fields = sorted({".".join(str(part) for part in err.get("loc", ())[1:]) or "body" for err in exc.errors()})
    return _render(
        ValidationError(
            message=f"The request has missing or invalid fields: {', '.join(fields)}.",
            action="Adjust the data sent and try again.",
        )
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Map routing-level HTTP errors (unknown path, wrong method) onto the taxonomy."""
    if exc.status_code == 405:
        return _render(MethodNotAllowedError())
    if exc.status_code == 404:
        return _render(NotFoundError())
    return _render(InternalServerError(message=str(exc.detail), status_code=exc.status_code))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _render(InternalServerError(cause=exc))
