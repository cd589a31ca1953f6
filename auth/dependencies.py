"""
auth/dependencies.py -- FastAPI Depends() helpers and session cookie handling.

The session token travels in the "session_id" cookie (httpOnly). A request
is authenticated when that cookie holds the token of an unexpired session.

get_current_session() resolves the cookie to a Session or raises
UnauthorizedError; the API exception handler renders it as a 401. A missing
cookie and a stale one fail the same way.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Request/Response)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request, Response

from auth.models import Session
from auth.sessions import EXPIRATION, SessionStore
from core.errors import UnauthorizedError

SESSION_COOKIE = "session_id"


async def get_current_session(request: Request) -> Session:
    """Require a valid session cookie. Raises UnauthorizedError otherwise.

    Use as a FastAPI dependency:
        @router.get("/user")
        async def route(session: Session = Depends(get_current_session)): ...
    """
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        raise UnauthorizedError(
            message="User does not have an active session.",
            action="Check that this user is logged in and try again.",
        )
    sessions: SessionStore = request.app.state.sessions
    return await sessions.find_valid_by_token(token)


def set_session_cookie(response: Response, token: str, secure: bool) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST (CSRF mitigation).
    secure: only sent over HTTPS; enabled in production.
    max_age: matches the session window so both lapse together.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        path="/",
        max_age=int(EXPIRATION.total_seconds()),
    )


def clear_session_cookie(response: Response, secure: bool) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        value="invalid",
        httponly=True,
        samesite="lax",
        secure=secure,
        path="/",
        max_age=-1,
    )
