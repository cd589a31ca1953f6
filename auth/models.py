"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores own the SQL
and the row mapping; these classes only own the shape.

All datetimes are timezone-aware UTC.

Layer rule: no imports from api/, core/, or db/.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """A registered identity.

    username and email are unique under case-insensitive comparison; the
    stored letter case is whatever the user signed up with.

    password is the bcrypt encoding (algorithm, cost, salt and digest in one
    60-character string), never the plaintext. Do not serialize it outward.
    """

    id: uuid.UUID
    username: str
    email: str
    password: str
    created_at: datetime
    updated_at: datetime


@dataclass
class Session:
    """A bearer-token login session.

    token is 48 random bytes as 96 hex characters. It proves identity on its
    own, so treat it like a password: never log it.

    A session is valid while expires_at is in the future. Expiring a session
    moves expires_at into the past instead of deleting the row.
    """

    id: uuid.UUID
    token: str
    user_id: uuid.UUID
    expires_at: datetime
    created_at: datetime
    updated_at: datetime
