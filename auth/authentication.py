"""
auth/authentication.py -- Email + password login with uniform failure messaging.

Two things can go wrong in a login: the email is unknown, or the password
does not match. Each step raises its own UnauthorizedError (useful when
reading logs), and authenticate() catches both and raises one generic
UnauthorizedError with the same message and action whichever step failed.
An observer cannot use the login endpoint to find out which emails are
registered.

Timing follows the same rule: an unknown email still costs one bcrypt
comparison, against a dummy hash, so response time does not give the answer
away either.

Anything that is not an UnauthorizedError (ServiceError from the database,
for instance) passes through untouched.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from auth.models import User
from auth.password import PasswordHasher
from auth.store import UserStore
from core.errors import NotFoundError, UnauthorizedError

logger = logging.getLogger("bancarios.auth")

_DUMMY_PASSWORD = "bancarios_timing_dummy"


class Authenticator:
    """Resolves (email, password) pairs to users."""

    def __init__(self, users: UserStore, hasher: PasswordHasher) -> None:
        self._users = users
        self._hasher = hasher
        self._dummy_hash: str | None = None

    async def authenticate(self, email: str, password: str) -> User:
        """Return the user owning email if password matches.

        Raises UnauthorizedError with a fixed message on any credential
        mismatch.
        """
        try:
            user = await self._find_user_by_email(email, password)
            await self._validate_password(password, user.password)
        except UnauthorizedError as exc:
            logger.info("Authentication failed: %s", exc.message)
            raise UnauthorizedError(
                message="Authentication data does not match.",
                action="Check that the data sent is correct.",
                cause=exc,
            ) from exc
        return user

    async def _find_user_by_email(self, email: str, password: str) -> User:
        try:
            return await self._users.find_by_email(email)
        except NotFoundError as exc:
            await self._hasher.compare(password, await self._get_dummy_hash())
            raise UnauthorizedError(
                message="Email does not match.",
                action="Check that this field is correct.",
                cause=exc,
            ) from exc

    async def _validate_password(self, password: str, stored_hash: str) -> None:
        if not await self._hasher.compare(password, stored_hash):
            raise UnauthorizedError(
                message="Password does not match.",
                action="Check that this field is correct.",
            )

    async def _get_dummy_hash(self) -> str:
        # Hashed at the configured cost so the dummy comparison costs the same
        # as a real one.
        if self._dummy_hash is None:
            self._dummy_hash = await self._hasher.hash(_DUMMY_PASSWORD)
        return self._dummy_hash
