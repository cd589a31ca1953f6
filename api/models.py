"""
API request and response models for Bancarios REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Field rules (lengths, email shape, password size) are enforced by
auth/store.py so the same ValidationError comes back whether a request
arrives over HTTP or from the CLI. These models only check shape.

Password hashes and cause chains never appear in any response model.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from auth.models import Session, User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users."""

    model_config = ConfigDict(extra="forbid")

    username: str
    email: str
    password: str


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/users/{username}.

    Dumped with exclude_unset=True so only fields the client actually sent
    reach UserStore.update().
    """

    model_config = ConfigDict(extra="forbid")

    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/sessions."""

    email: str
    password: str


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. No password field, by construction."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    username: str
    email: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class SessionResponse(BaseModel):
    """Response for POST /api/v1/sessions and DELETE /api/v1/sessions."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    token: str
    user_id: UUID
    expires_at: datetime
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(
            id=session.id,
            token=session.token,
            user_id=session.user_id,
            expires_at=session.expires_at,
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class MigrationResponse(BaseModel):
    """One entry in GET/POST /api/v1/migrations."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str


class DatabaseStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    backend: str
    version: Optional[str] = None
    max_connections: Optional[int] = None
    opened_connections: Optional[int] = None


class StatusResponse(BaseModel):
    """Response for GET /api/v1/status."""

    model_config = ConfigDict(frozen=True)

    updated_at: datetime
    dependencies: dict[str, DatabaseStatus]


class ErrorResponse(BaseModel):
    """Uniform error envelope produced from AppError.to_dict()."""

    model_config = ConfigDict(frozen=True)

    name: str
    message: str
    action: str
    status_code: int
