"""
api/routes/v1/access.py -- Role assignments on a project.

Routes:
  GET    /api/v1/projects/{id}/access  -- list the project's access rows (Reader)
  POST   /api/v1/projects/{id}/access  -- grant a role to a user named by id,
                                          username or email (Editor)
  PATCH  /api/v1/access/{access_id}    -- change a role (Editor)
  DELETE /api/v1/access/{access_id}    -- revoke a role (Editor)

The owner's own access row can be neither changed nor removed; otherwise a
project could end up with no Editor able to manage it.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import AccessCreate, AccessPatch, AccessResponse
from api.routes.v1.projects import load_project
from auth.dependencies import get_auth_context, get_gate
from auth.gate import AuthGate
from auth.models import AuthContext, User
from auth.store import UserStore
from core.errors import AlreadyExists, Internal, InvalidArgument, NotFound, PermissionDenied
from db.errors import ConstraintViolation, RecordNotFound, StorageError
from projects.models import Access, Project, Role
from projects.store import AccessStore

router = APIRouter()


def _load_access(request: Request, access_id: int) -> Access:
    access_store: AccessStore = request.app.state.access_store
    try:
        access = access_store.get_by_id(access_id)
    except StorageError as exc:
        raise Internal("Could not load access.") from exc
    if access is None:
        raise NotFound("No access found with given id")
    return access


def _resolve_target(request: Request, body: AccessCreate) -> User:
    given = [v for v in (body.user_id, body.username, body.email) if v is not None]
    if len(given) != 1:
        raise InvalidArgument("Provide exactly one of user_id, username or email.")
    user_store: UserStore = request.app.state.user_store
    try:
        if body.user_id is not None:
            user = user_store.get_by_id(body.user_id)
        elif body.username is not None:
            user = user_store.get_by_username(body.username)
        else:
            user = user_store.get_by_email(body.email)
    except StorageError as exc:
        raise Internal("Could not load user.") from exc
    if user is None:
        raise NotFound("User not found.")
    return user


def _guard_owner_row(project: Project, access: Access) -> None:
    if access.user_id == project.owner_id:
        raise PermissionDenied("The project owner's access cannot be changed.")


@router.get("/projects/{project_id}/access", response_model=list[AccessResponse])
def list_access(
    request: Request,
    project_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    gate: AuthGate = Depends(get_gate),
) -> list[AccessResponse]:
    load_project(request, project_id)
    gate.require_role(ctx.user_id, project_id, Role.READER)
    access_store: AccessStore = request.app.state.access_store
    try:
        rows = access_store.list_for_project(project_id)
    except StorageError as exc:
        raise Internal("Could not load access.") from exc
    return [AccessResponse.from_access(a) for a in rows]


@router.post("/projects/{project_id}/access", response_model=AccessResponse, status_code=201)
def create_access(
    request: Request,
    project_id: int,
    body: AccessCreate,
    ctx: AuthContext = Depends(get_auth_context),
    gate: AuthGate = Depends(get_gate),
) -> AccessResponse:
    load_project(request, project_id)
    gate.require_role(ctx.user_id, project_id, Role.EDITOR)
    target = _resolve_target(request, body)
    access_store: AccessStore = request.app.state.access_store
    try:
        access = access_store.create(Access(role=Role(body.role.value), user_id=target.id, project_id=project_id))
    except ConstraintViolation as exc:
        if exc.kind == "unique":
            raise AlreadyExists("User already has access to this project") from exc
        raise NotFound("User or project no longer exists.") from exc
    except StorageError as exc:
        raise Internal("Could not save access.") from exc
    return AccessResponse.from_access(access)


@router.patch("/access/{access_id}", response_model=AccessResponse)
def update_access(
    request: Request,
    access_id: int,
    body: AccessPatch,
    ctx: AuthContext = Depends(get_auth_context),
    gate: AuthGate = Depends(get_gate),
) -> AccessResponse:
    access = _load_access(request, access_id)
    project = load_project(request, access.project_id)
    gate.require_role(ctx.user_id, project.id, Role.EDITOR)
    _guard_owner_row(project, access)
    access_store: AccessStore = request.app.state.access_store
    try:
        updated = access_store.update(access_id, Role(body.role.value))
    except RecordNotFound as exc:
        raise NotFound("No access found with given id") from exc
    except StorageError as exc:
        raise Internal("Could not update access.") from exc
    return AccessResponse.from_access(updated)


@router.delete("/access/{access_id}", response_model=AccessResponse)
def delete_access(
    request: Request,
    access_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    gate: AuthGate = Depends(get_gate),
) -> AccessResponse:
    access = _load_access(request, access_id)
    project = load_project(request, access.project_id)
    gate.require_role(ctx.user_id, project.id, Role.EDITOR)
    _guard_owner_row(project, access)
    access_store: AccessStore = request.app.state.access_store
    try:
        deleted = access_store.delete(access_id)
    except RecordNotFound as exc:
        raise NotFound("No access found with given id") from exc
    except StorageError as exc:
        raise Internal("Could not delete access.") from exc
    return AccessResponse.from_access(deleted)
