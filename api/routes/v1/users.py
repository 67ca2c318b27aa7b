"""
api/routes/v1/users.py -- User signup, self-service update/delete and lookup.

Routes:
  POST   /api/v1/users            -- public signup
  GET    /api/v1/users?ids=1&ids=2 -- {id, username} for the ids that exist (requires auth)
  GET    /api/v1/users/me         -- the caller's own record (requires auth)
  PATCH  /api/v1/users/me         -- update username/email/password (requires auth)
  DELETE /api/v1/users/me         -- delete the caller and everything they own (requires auth)

The caller's identity always comes from the access token, never from the body.
A unique clash on username or email becomes a field-specific AlreadyExists
here, the one place where the storage error's business meaning is known.
"""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends, Query, Request

from api.models import EMAIL_PATTERN, USERNAME_PATTERN, UserCreate, UserPatch, UserResponse, UserSummary
from auth.dependencies import get_auth_context
from auth.hashing import MAX_PASSWORD_BYTES, HashingError, PasswordHasher, fits
from auth.models import AuthContext, User
from auth.store import UserStore
from core.errors import AlreadyExists, Internal, InvalidArgument, NotFound
from db.errors import ConstraintViolation, RecordNotFound, StorageError

logger = logging.getLogger("modelgate.api")

router = APIRouter()

_USERNAME_RE = re.compile(USERNAME_PATTERN)
_EMAIL_RE = re.compile(EMAIL_PATTERN)


def _check_username(username: str) -> None:
    if not _USERNAME_RE.match(username):
        raise InvalidArgument("Username must be 3-32 characters of letters, digits or underscore.")


def _check_email(email: str) -> None:
    if not _EMAIL_RE.match(email):
        raise InvalidArgument("Invalid email address.")


def _hash_password(hasher: PasswordHasher, password: str) -> str:
    if not fits(password):
        raise InvalidArgument(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    try:
        return hasher.hash(password)
    except HashingError as exc:
        raise Internal("Could not hash password.") from exc


def _unique_clash(exc: ConstraintViolation) -> Exception:
    if exc.kind == "unique" and exc.involves("username"):
        return AlreadyExists("A user with that username already exists")
    if exc.kind == "unique" and exc.involves("email"):
        return AlreadyExists("A user with that email already exists")
    return Internal("Could not save user.")


def _to_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, username=user.username, email=user.email)


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(request: Request, body: UserCreate) -> UserResponse:
    """Sign up. The password is hashed before it reaches the store."""
    _check_username(body.username)
    _check_email(body.email)
    user_store: UserStore = request.app.state.user_store
    digest = _hash_password(request.app.state.hasher, body.password)
    try:
        user = user_store.create(User(username=body.username, email=body.email, password=digest))
    except ConstraintViolation as exc:
        raise _unique_clash(exc) from exc
    except StorageError as exc:
        raise Internal("Could not save user.") from exc
    logger.info("User %s created", user.id)
    return _to_response(user)


@router.get("/users", response_model=list[UserSummary])
def list_users(
    request: Request,
    ids: list[int] = Query(default=[]),
    ctx: AuthContext = Depends(get_auth_context),
) -> list[UserSummary]:
    """Return {id, username} for every requested id that exists."""
    user_store: UserStore = request.app.state.user_store
    try:
        users = user_store.get_by_ids(ids)
    except StorageError as exc:
        raise Internal("Could not load users.") from exc
    return [UserSummary(id=u.id, username=u.username) for u in users]


@router.get("/users/me", response_model=UserResponse)
def get_me(request: Request, ctx: AuthContext = Depends(get_auth_context)) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    try:
        user = user_store.get_by_id(ctx.user_id)
    except StorageError as exc:
        raise Internal("Could not load user.") from exc
    if user is None:
        raise NotFound("User not found.")
    return _to_response(user)


@router.patch("/users/me", response_model=UserResponse)
def update_me(request: Request, body: UserPatch, ctx: AuthContext = Depends(get_auth_context)) -> UserResponse:
    """Update any subset of the caller's username, email and password."""
    updates: dict = {}
    if body.username is not None:
        _check_username(body.username)
        updates["username"] = body.username
    if body.email is not None:
        _check_email(body.email)
        updates["email"] = body.email
    if body.password is not None:
        updates["password"] = _hash_password(request.app.state.hasher, body.password)
    if not updates:
        raise InvalidArgument("No fields to update.")

    user_store: UserStore = request.app.state.user_store
    try:
        user = user_store.update(ctx.user_id, **updates)
    except RecordNotFound as exc:
        raise NotFound("User not found.") from exc
    except ConstraintViolation as exc:
        raise _unique_clash(exc) from exc
    except StorageError as exc:
        raise Internal("Could not update user.") from exc
    return _to_response(user)


@router.delete("/users/me", response_model=UserResponse)
def delete_me(request: Request, ctx: AuthContext = Depends(get_auth_context)) -> UserResponse:
    """Delete the caller with their sessions, access rows and owned projects."""
    user_store: UserStore = request.app.state.user_store
    try:
        user = user_store.delete(ctx.user_id)
    except RecordNotFound as exc:
        raise NotFound("User not found.") from exc
    except StorageError as exc:
        raise Internal("Could not delete user.") from exc
    logger.info("User %s deleted", user.id)
    return _to_response(user)
