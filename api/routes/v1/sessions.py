"""
api/routes/v1/sessions.py -- Login, logout and current-user endpoints.

Routes:
  POST   /api/v1/sessions -- log in with email + password; sets session cookie; 201
  DELETE /api/v1/sessions -- log out: expire the cookie's session, clear cookie
  GET    /api/v1/user     -- current user; renews the session (sliding window)

Every response that carries or clears a session cookie is sent with
Cache-Control: no-store so no intermediary keeps a copy of the token.

Wrong email and wrong password produce the same 401 body; see
auth/authentication.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, SessionResponse, UserResponse
from auth.authentication import Authenticator
from auth.dependencies import clear_session_cookie, get_current_session, set_session_cookie
from auth.models import Session
from auth.sessions import SessionStore
from auth.store import UserStore
from core.config import Settings

router = APIRouter()


@router.post("/sessions", response_model=SessionResponse, status_code=201)
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    authenticator: Authenticator = request.app.state.authenticator
    sessions: SessionStore = request.app.state.sessions
    settings: Settings = request.app.state.settings

    user = await authenticator.authenticate(body.email, body.password)
    session = await sessions.create(user.id)

    resp = JSONResponse(status_code=201, content=SessionResponse.from_session(session).model_dump(mode="json"))
    set_session_cookie(resp, session.token, secure=settings.is_production)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.delete("/sessions", response_model=SessionResponse)
async def logout(request: Request, session: Session = Depends(get_current_session)) -> JSONResponse:
    sessions: SessionStore = request.app.state.sessions
    settings: Settings = request.app.state.settings

    expired = await sessions.expire_by_id(session.id)

    resp = JSONResponse(content=SessionResponse.from_session(expired).model_dump(mode="json"))
    clear_session_cookie(resp, secure=settings.is_production)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/user", response_model=UserResponse)
async def current_user(request: Request, session: Session = Depends(get_current_session)) -> JSONResponse:
    """Return the logged-in user and push the session expiry forward."""
    sessions: SessionStore = request.app.state.sessions
    users: UserStore = request.app.state.users
    settings: Settings = request.app.state.settings

    renewed = await sessions.renew(session.id)
    user = await users.find_by_id(renewed.user_id)

    resp = JSONResponse(content=UserResponse.from_user(user).model_dump(mode="json"))
    set_session_cookie(resp, renewed.token, secure=settings.is_production)
    resp.headers["Cache-Control"] = "no-store"
    return resp
