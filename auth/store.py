"""
auth/store.py -- User directory: uniqueness-enforced identity persistence.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route code never touches SQL directly.

Uniqueness (username, email) is case-insensitive and is checked twice:

  1. An existence probe per field before the write. This is what produces
     the per-field ValidationError messages ("username already in use" vs
     "email already in use").
  2. Unique indexes on LOWER(username) / LOWER(email) in the database.

The probe and the write are separate round trips, so two concurrent signups
for the same name can both pass step 1. Step 2 then rejects the second
write; db.database raises UniqueViolationError and _write() turns it into
the same ValidationError a probe would have raised.

Partial update: only fields present in the payload are validated, probed
and written. The payload may contain username, email and password; any
other key is rejected rather than silently stored. Probes on update skip the
user's own row, so resubmitting an unchanged value is not a conflict.

Security: all queries use bound parameters. No f-strings in SQL. The
caller's input mapping is never mutated; hashing returns a new dict.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime, MetaData, String, Table, Uuid, func, select
from sqlalchemy.sql import Executable

from auth.models import User
from auth.password import MAX_PASSWORD_BYTES, PasswordHasher
from core.errors import NotFoundError, UniqueViolationError, ValidationError
from db.database import Database, QueryResult

logger = logging.getLogger("bancarios.auth")

MAX_USERNAME_LENGTH = 30
MAX_EMAIL_LENGTH = 254

_USER_FIELDS = ("username", "email", "password")

# ---------------------------------------------------------------------------
# Schema (query-building only -- DDL lives in db/migrations/)
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Uuid, primary_key=True),
    Column("username", String(MAX_USERNAME_LENGTH), nullable=False),
    Column("email", String(MAX_EMAIL_LENGTH), nullable=False),
    Column("password", String(60), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _duplicate_username() -> ValidationError:
    return ValidationError(
        message="The username informed is already in use.",
        action="Use another username to continue.",
    )


def _duplicate_email() -> ValidationError:
    return ValidationError(
        message="The email informed is already in use.",
        action="Use another email to continue.",
    )


def _validated(fields: Mapping[str, Any], *, partial: bool) -> dict[str, str]:
    """Check keys, types and lengths; return a new dict of the accepted fields.

    With partial=False every user field is required (signup). With
    partial=True any subset is accepted, including none.
    """
    unknown = sorted(set(fields) - set(_USER_FIELDS))
    if unknown:
        raise ValidationError(
            message=f"Unknown field(s): {', '.join(unknown)}.",
            action="Send only username, email and password.",
        )
    if not partial:
        missing = [name for name in _USER_FIELDS if name not in fields]
        if missing:
            raise ValidationError(
                message=f"Missing required field(s): {', '.join(missing)}.",
                action="Send username, email and password.",
            )

    values: dict[str, str] = {}
    for name in _USER_FIELDS:
        if name not in fields:
            continue
        value = fields[name]
        if not isinstance(value, str) or not value:
            raise ValidationError(
                message=f"The {name} field must be a non-empty string.",
                action=f"Fill in the {name} field and try again.",
            )
        values[name] = value

    if "username" in values and len(values["username"]) > MAX_USERNAME_LENGTH:
        raise ValidationError(
            message=f"The username must have at most {MAX_USERNAME_LENGTH} characters.",
            action="Choose a shorter username.",
        )
    if "email" in values:
        email = values["email"]
        if len(email) > MAX_EMAIL_LENGTH or "@" not in email:
            raise ValidationError(
                message="The email informed is not a valid address.",
                action="Check the email and try again.",
            )
    if "password" in values and len(values["password"].encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            message=f"The password must have at most {MAX_PASSWORD_BYTES} bytes.",
            action="Choose a shorter password.",
        )
    return values


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        users = UserStore(database, PasswordHasher.from_settings(settings))
        user = await users.create({"username": "ana", "email": "ana@x.com", "password": "secret123"})
        same = await users.find_by_username("ANA")
        user = await users.update(user.id, {"email": "ana@y.com"})
    """

    def __init__(self, database: Database, hasher: PasswordHasher) -> None:
        self._db = database
        self._hasher = hasher

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def find_by_id(self, user_id: uuid.UUID | str) -> User:
        """Return the user with this id. Raises NotFoundError if none."""
        not_found = NotFoundError(
            message="The id informed was not found in the system.",
            action="Check that the id is correct.",
        )
        try:
            key = user_id if isinstance(user_id, uuid.UUID) else uuid.UUID(str(user_id))
        except ValueError:
            raise not_found from None
        result = await self._db.query(_users.select().where(_users.c.id == key).limit(1))
        if not result.rows:
            raise not_found
        return _row_to_user(result.rows[0])

    async def find_by_username(self, username: str) -> User:
        """Case-insensitive exact match on username. Raises NotFoundError if none."""
        result = await self._db.query(
            _users.select().where(func.lower(_users.c.username) == func.lower(username)).limit(1)
        )
        if not result.rows:
            raise NotFoundError(
                message="The username informed was not found in the system.",
                action="Check that the username is typed correctly.",
            )
        return _row_to_user(result.rows[0])

    async def find_by_email(self, email: str) -> User:
        """Case-insensitive exact match on email. Raises NotFoundError if none."""
        result = await self._db.query(
            _users.select().where(func.lower(_users.c.email) == func.lower(email)).limit(1)
        )
        if not result.rows:
            raise NotFoundError(
                message="The email informed was not found in the system.",
                action="Check that the email is typed correctly.",
            )
        return _row_to_user(result.rows[0])

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, fields: Mapping[str, Any]) -> User:
        """Validate, probe uniqueness, hash the password and insert.

        Username is probed before email, so a payload duplicating both is
        reported as a username conflict.

        Raises ValidationError for bad input or a duplicate username/email.
        """
        values = _validated(fields, partial=False)
        await self._ensure_unique_username(values["username"])
        await self._ensure_unique_email(values["email"])
        values = await self._with_hashed_password(values)

        now = _now()
        result = await self._write(
            _users.insert()
            .values(id=uuid.uuid4(), created_at=now, updated_at=now, **values)
            .returning(*_users.c)
        )
        user = _row_to_user(result.rows[0])
        logger.info("Created user %s (%s)", user.username, user.id)
        return user

    async def update(self, user_id: uuid.UUID | str, partial_fields: Mapping[str, Any]) -> User:
        """Merge partial_fields over the stored user and persist.

        Fields absent from the payload are neither validated nor written.
        updated_at is stamped on every call.

        Raises NotFoundError for an unknown id, ValidationError for bad input
        or a duplicate username/email.
        """
        current = await self.find_by_id(user_id)
        values = _validated(partial_fields, partial=True)
        if "username" in values:
            await self._ensure_unique_username(values["username"], exclude_id=current.id)
        if "email" in values:
            await self._ensure_unique_email(values["email"], exclude_id=current.id)
        values = await self._with_hashed_password(values)

        result = await self._write(
            _users.update()
            .where(_users.c.id == current.id)
            .values(updated_at=_now(), **values)
            .returning(*_users.c)
        )
        if not result.rows:
            # Row vanished between load and write; users are never deleted,
            # so treat it like any other miss.
            raise NotFoundError(message="The id informed was not found in the system.")
        user = _row_to_user(result.rows[0])
        logger.info("Updated user %s (%s): %s", user.username, user.id, ", ".join(sorted(values)) or "no fields")
        return user

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _ensure_unique_username(self, username: str, exclude_id: uuid.UUID | None = None) -> None:
        stmt = select(_users.c.id).where(func.lower(_users.c.username) == func.lower(username))
        if exclude_id is not None:
            stmt = stmt.where(_users.c.id != exclude_id)
        result = await self._db.query(stmt.limit(1))
        if result.rows:
            raise _duplicate_username()

    async def _ensure_unique_email(self, email: str, exclude_id: uuid.UUID | None = None) -> None:
        stmt = select(_users.c.id).where(func.lower(_users.c.email) == func.lower(email))
        if exclude_id is not None:
            stmt = stmt.where(_users.c.id != exclude_id)
        result = await self._db.query(stmt.limit(1))
        if result.rows:
            raise _duplicate_email()

    async def _with_hashed_password(self, values: dict[str, str]) -> dict[str, str]:
        if "password" not in values:
            return values
        return {**values, "password": await self._hasher.hash(values["password"])}

    async def _write(self, statement: Executable) -> QueryResult:
        """Run an INSERT/UPDATE, mapping a unique-index collision to ValidationError.

        Reaching the except branch means a concurrent request won the race
        after our probe passed.
        """
        try:
            return await self._db.query(statement)
        except UniqueViolationError as exc:
            detail = str(exc.cause).lower() if exc.cause is not None else ""
            error = _duplicate_email() if "users_email_lower_key" in detail else _duplicate_username()
            error.cause = exc
            logger.warning("Uniqueness race lost at storage level: %s", error.message)
            raise error from exc


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        password=row["password"],
        created_at=_as_utc(row["created_at"]),
        updated_at=_as_utc(row["updated_at"]),
    )
