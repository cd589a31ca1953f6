"""
auth/sessions.py -- Bearer-token session lifecycle.

Lifecycle of a session row:

    create ──> valid ──renew──> valid            (sliding 30-day window)
                 │
                 ├──expire_by_id──> expired      (expires_at minus one year)
                 └──clock passes expires_at──> expired

Expired is terminal. Rows are never deleted: expiry moves expires_at into the
past, which is enough for find_valid_by_token() to stop matching while the
row stays behind as an audit record.

Tokens: secrets.token_hex(48) -> 48 bytes from the OS CSPRNG as 96 hex
characters. Tokens are compared by exact equality in SQL and never logged.

Lookup failures are deliberately vague. A token that never existed and a
token that expired yesterday produce the same UnauthorizedError, so the
response does not tell a caller anything about the token's history.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import Column, DateTime, MetaData, String, Table, Uuid

from auth.models import Session
from core.errors import NotFoundError, UnauthorizedError
from db.database import Database

logger = logging.getLogger("bancarios.auth")

EXPIRATION = timedelta(days=30)
TOKEN_BYTES = 48

# How far expire_by_id() pushes expires_at back. Far enough that clock skew
# between app servers and the database cannot make the row valid again.
_EXPIRE_BACKDATE = timedelta(days=365)

# ---------------------------------------------------------------------------
# Schema (query-building only -- DDL lives in db/migrations/)
# ---------------------------------------------------------------------------

_metadata = MetaData()

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", Uuid, primary_key=True),
    Column("token", String(96), nullable=False),
    Column("user_id", Uuid, nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _as_uuid(value: uuid.UUID | str) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _no_active_session() -> UnauthorizedError:
    return UnauthorizedError(
        message="User does not have an active session.",
        action="Check that this user is logged in and try again.",
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SessionStore:
    """Repository for Session records.

    Usage:
        sessions = SessionStore(database)
        session = await sessions.create(user.id)
        session = await sessions.find_valid_by_token(token_from_cookie)
        session = await sessions.renew(session.id)       # on every authenticated hit
        await sessions.expire_by_id(session.id)          # logout
    """

    def __init__(self, database: Database, expiration: timedelta = EXPIRATION) -> None:
        self._db = database
        self.expiration = expiration

    async def create(self, user_id: uuid.UUID | str) -> Session:
        """Issue a new session for user_id, valid for self.expiration."""
        now = _now()
        result = await self._db.query(
            _sessions.insert()
            .values(
                id=uuid.uuid4(),
                token=secrets.token_hex(TOKEN_BYTES),
                user_id=_as_uuid(user_id),
                expires_at=now + self.expiration,
                created_at=now,
                updated_at=now,
            )
            .returning(*_sessions.c)
        )
        session = _row_to_session(result.rows[0])
        logger.info("Created session %s for user %s", session.id, session.user_id)
        return session

    async def find_valid_by_token(self, token: str) -> Session:
        """Return the session for token if it has not expired.

        Raises UnauthorizedError when no unexpired session has this token.
        """
        result = await self._db.query(
            _sessions.select().where((_sessions.c.token == token) & (_sessions.c.expires_at > _now())).limit(1)
        )
        if not result.rows:
            raise _no_active_session()
        return _row_to_session(result.rows[0])

    async def renew(self, session_id: uuid.UUID | str) -> Session:
        """Slide expires_at to now + self.expiration; the token is unchanged.

        Only a still-valid session can be renewed. An expired or unknown id
        raises UnauthorizedError, so renew cannot bring an expired session
        back.
        """
        key = _as_uuid(session_id)
        if key is None:
            raise _no_active_session()
        now = _now()
        result = await self._db.query(
            _sessions.update()
            .where((_sessions.c.id == key) & (_sessions.c.expires_at > now))
            .values(expires_at=now + self.expiration, updated_at=now)
            .returning(*_sessions.c)
        )
        if not result.rows:
            raise _no_active_session()
        return _row_to_session(result.rows[0])

    async def expire_by_id(self, session_id: uuid.UUID | str) -> Session:
        """Move expires_at one year into the past. The row is kept.

        Raises NotFoundError for an unknown id.
        """
        key = _as_uuid(session_id)
        not_found = NotFoundError(
            message="The session informed was not found in the system.",
            action="Check that the session id is correct.",
        )
        if key is None:
            raise not_found

        # Backdating is computed in Python: interval arithmetic in SQL is not
        # portable across the PostgreSQL and SQLite dialects.
        current = await self._db.query(_sessions.select().where(_sessions.c.id == key).limit(1))
        if not current.rows:
            raise not_found
        expires_at = _as_utc(current.rows[0]["expires_at"]) - _EXPIRE_BACKDATE

        result = await self._db.query(
            _sessions.update()
            .where(_sessions.c.id == key)
            .values(expires_at=expires_at, updated_at=_now())
            .returning(*_sessions.c)
        )
        session = _row_to_session(result.rows[0])
        logger.info("Expired session %s for user %s", session.id, session.user_id)
        return session


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_session(row: Mapping[str, Any]) -> Session:
    return Session(
        id=row["id"],
        token=row["token"],
        user_id=row["user_id"],
        expires_at=_as_utc(row["expires_at"]),
        created_at=_as_utc(row["created_at"]),
        updated_at=_as_utc(row["updated_at"]),
    )
