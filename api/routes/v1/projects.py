"""
api/routes/v1/projects.py -- Project CRUD behind the access gate.

Routes:
  POST   /api/v1/projects          -- create; caller becomes owner with Editor access
  GET    /api/v1/projects          -- every project the caller holds a role on
  GET    /api/v1/projects/{id}     -- project + its queries (Reader)
  PATCH  /api/v1/projects/{id}     -- name / components_info / owner_id (Editor;
                                      ownership transfer by the owner only)
  DELETE /api/v1/projects/{id}     -- owner only; cascades queries and access rows

Order of checks on every project-scoped route: live access token, project
exists (404), role (403), then the store call. Changing components_info marks
all of the project's queries outdated in the same transaction as the write.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import (
    ProjectCreate,
    ProjectDetailResponse,
    ProjectInfoResponse,
    ProjectPatch,
    ProjectResponse,
    QueryResponse,
)
from auth.dependencies import get_auth_context, get_gate
from auth.gate import AuthGate
from auth.models import AuthContext
from core.errors import AlreadyExists, Internal, InvalidArgument, NotFound, PermissionDenied
from db.errors import ConstraintViolation, RecordNotFound, StorageError
from projects.models import Project, Role
from projects.store import ProjectStore, QueryStore

router = APIRouter()


def load_project(request: Request, project_id: int) -> Project:
    """Return the project or raise NotFound. Shared by the access and query routes."""
    project_store: ProjectStore = request.app.state.project_store
    try:
        project = project_store.get_by_id(project_id)
    except StorageError as exc:
        raise Internal("Could not load project.") from exc
    if project is None:
        raise NotFound("No project found with given id")
    return project


def _project_clash(exc: ConstraintViolation) -> Exception:
    if exc.kind == "unique":
        return AlreadyExists("A project with that name already exists")
    if exc.kind == "foreign_key":
        return InvalidArgument("No user with that id exists")
    return Internal("Could not save project.")


@router.post("/projects", response_model=ProjectResponse, status_code=201)
def create_project(
    request: Request,
    body: ProjectCreate,
    ctx: AuthContext = Depends(get_auth_context),
) -> ProjectResponse:
    if body.components_info is None:
        raise InvalidArgument("No components info provided")
    project_store: ProjectStore = request.app.state.project_store
    try:
        project = project_store.create(
            Project(name=body.name, owner_id=ctx.user_id, components_info=body.components_info)
        )
    except ConstraintViolation as exc:
        raise _project_clash(exc) from exc
    except StorageError as exc:
        raise Internal("Could not save project.") from exc
    return ProjectResponse.from_project(project)


@router.get("/projects", response_model=list[ProjectInfoResponse])
def list_projects(request: Request, ctx: AuthContext = Depends(get_auth_context)) -> list[ProjectInfoResponse]:
    """Every project the caller has an access row on, with the caller's role."""
    project_store: ProjectStore = request.app.state.project_store
    try:
        infos = project_store.list_for_user(ctx.user_id)
    except StorageError as exc:
        raise Internal("Could not load projects.") from exc
    return [ProjectInfoResponse.from_info(i) for i in infos]


@router.get("/projects/{project_id}", response_model=ProjectDetailResponse)
def get_project(
    request: Request,
    project_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    gate: AuthGate = Depends(get_gate),
) -> ProjectDetailResponse:
    project = load_project(request, project_id)
    gate.require_role(ctx.user_id, project_id, Role.READER)
    query_store: QueryStore = request.app.state.query_store
    try:
        queries = query_store.list_for_project(project_id)
    except StorageError as exc:
        raise Internal("Could not load queries.") from exc
    return ProjectDetailResponse(
        project=ProjectResponse.from_project(project),
        queries=[QueryResponse.from_query(q) for q in queries],
    )


@router.patch("/projects/{project_id}", response_model=ProjectResponse)
def update_project(
    request: Request,
    project_id: int,
    body: ProjectPatch,
    ctx: AuthContext = Depends(get_auth_context),
    gate: AuthGate = Depends(get_gate),
) -> ProjectResponse:
    project = load_project(request, project_id)
    gate.require_role(ctx.user_id, project_id, Role.EDITOR)

    updates: dict = {}
    if body.name is not None:
        updates["name"] = body.name
    if body.components_info is not None:
        updates["components_info"] = body.components_info
    if body.owner_id is not None and body.owner_id != project.owner_id:
        if ctx.user_id != project.owner_id:
            raise PermissionDenied("Only the owner can transfer ownership of a project.")
        updates["owner_id"] = body.owner_id
    if not updates:
        raise InvalidArgument("No fields to update.")

    project_store: ProjectStore = request.app.state.project_store
    try:
        updated = project_store.update(project_id, **updates)
    except RecordNotFound as exc:
        raise NotFound("No project found with given id") from exc
    except ConstraintViolation as exc:
        raise _project_clash(exc) from exc
    except StorageError as exc:
        raise Internal("Could not update project.") from exc
    return ProjectResponse.from_project(updated)


@router.delete("/projects/{project_id}", response_model=ProjectResponse)
def delete_project(
    request: Request,
    project_id: int,
    ctx: AuthContext = Depends(get_auth_context),
) -> ProjectResponse:
    """Delete a project. Only its owner may do this, whatever other Editors exist."""
    project = load_project(request, project_id)
    if project.owner_id != ctx.user_id:
        raise PermissionDenied("Only the owner can delete a project.")
    project_store: ProjectStore = request.app.state.project_store
    try:
        deleted = project_store.delete(project_id)
    except RecordNotFound as exc:
        raise NotFound("No project found with given id") from exc
    except StorageError as exc:
        raise Internal("Could not delete project.") from exc
    return ProjectResponse.from_project(deleted)
