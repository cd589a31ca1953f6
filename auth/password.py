"""
auth/password.py -- One-way salted password hashing with bcrypt.

bcrypt embeds everything needed to verify a password in the hash itself:

    $2b$14$abcdefghijklmnopqrstuuABCDEFGHIJKLMNOPQRSTUVWXYZ0123
    ---- -- ---------------------- -------------------------------
    algo cost    salt (22 chars)          digest (31 chars)

so there is no separate salt column, and compare() reads the cost and salt
back out of the stored value. The output is always 60 characters.

Work factor comes from Settings.bcrypt_rounds: 14 in production (about a
second per hash), 4 elsewhere so the test suite is not dominated by hashing.

bcrypt is CPU-bound and releases the GIL, so both operations run in a worker
thread to keep the event loop responsive.

bcrypt only reads the first 72 bytes of input; newer releases raise on
longer input instead. auth/store.py rejects longer passwords at signup, and
compare() treats the error as a mismatch.
"""

from __future__ import annotations

import asyncio

import bcrypt

from core.config import Settings

MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Hashes and verifies passwords at a fixed bcrypt cost."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    @classmethod
    def from_settings(cls, settings: Settings) -> PasswordHasher:
        return cls(rounds=settings.bcrypt_rounds)

    async def hash(self, plain: str) -> str:
        """Return the bcrypt encoding of plain with a fresh random salt."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = await asyncio.to_thread(bcrypt.hashpw, plain.encode("utf-8"), salt)
        return hashed.decode("ascii")

    async def compare(self, plain: str, encoded: str) -> bool:
        """Return True if plain matches the stored bcrypt encoding.

        A malformed encoding or an over-long password returns False.
        """
        try:
            return await asyncio.to_thread(bcrypt.checkpw, plain.encode("utf-8"), encoded.encode("ascii"))
        except (ValueError, UnicodeEncodeError):
            return False
