"""
api/routes/v1/users.py -- User registration and profile endpoints.

Routes:
  POST  /api/v1/users             -- sign up; 201
  GET   /api/v1/users/{username}  -- public profile (case-insensitive lookup)
  PATCH /api/v1/users/{username}  -- partial update of username/email/password

Duplicate usernames/emails and bad field values come back as ValidationError
(400) from auth/store.py; unknown usernames as NotFoundError (404).
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import UserCreate, UserPatch, UserResponse
from auth.store import UserStore

router = APIRouter()


@router.post("/users", response_model=UserResponse, status_code=201)
async def create_user(request: Request, body: UserCreate) -> JSONResponse:
    users: UserStore = request.app.state.users
    user = await users.create(body.model_dump())
    return JSONResponse(status_code=201, content=UserResponse.from_user(user).model_dump(mode="json"))


@router.get("/users/{username}", response_model=UserResponse)
async def get_user(request: Request, username: str) -> JSONResponse:
    users: UserStore = request.app.state.users
    user = await users.find_by_username(username)
    return JSONResponse(content=UserResponse.from_user(user).model_dump(mode="json"))


@router.patch("/users/{username}", response_model=UserResponse)
async def patch_user(request: Request, username: str, body: UserPatch) -> JSONResponse:
    """Update only the fields present in the body."""
    users: UserStore = request.app.state.users
    current = await users.find_by_username(username)
    user = await users.update(current.id, body.model_dump(exclude_unset=True))
    return JSONResponse(content=UserResponse.from_user(user).model_dump(mode="json"))
