"""
api/routes/v1/queries.py -- Cached queries on a project, and running them.

Routes:
  POST   /api/v1/queries            -- create (Editor on body.project_id); fresh, no result
  PATCH  /api/v1/queries/{id}       -- change the text (Editor); result and flag kept
  DELETE /api/v1/queries/{id}       -- delete (Editor)
  POST   /api/v1/queries/{id}/run   -- send to the analysis peer and cache the result (Reader)

Run ordering: authorization and the reads it needs finish first, then the peer
call runs with no transaction open, then the result is written in its own
transaction. The row comes back fresh only if the project's components_info
still equals the payload the peer saw.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from api.models import QueryCreate, QueryPatch, QueryResponse
from api.routes.v1.projects import load_project
from auth.dependencies import get_auth_context, get_gate
from auth.gate import AuthGate
from auth.models import AuthContext
from core.errors import Internal, NotFound
from db.errors import ConstraintViolation, RecordNotFound, StorageError
from peer.client import AnalysisBackend, PeerError
from projects.models import Query, Role
from projects.store import QueryStore

logger = logging.getLogger("modelgate.api")

router = APIRouter()


def _load_query(request: Request, query_id: int) -> Query:
    query_store: QueryStore = request.app.state.query_store
    try:
        query = query_store.get_by_id(query_id)
    except StorageError as exc:
        raise Internal("Could not load query.") from exc
    if query is None:
        raise NotFound("Query not found")
    return query


@router.post("/queries", response_model=QueryResponse, status_code=201)
def create_query(
    request: Request,
    body: QueryCreate,
    ctx: AuthContext = Depends(get_auth_context),
    gate: AuthGate = Depends(get_gate),
) -> QueryResponse:
    load_project(request, body.project_id)
    gate.require_role(ctx.user_id, body.project_id, Role.EDITOR)
    query_store: QueryStore = request.app.state.query_store
    try:
        query = query_store.create(Query(project_id=body.project_id, string=body.string))
    except ConstraintViolation as exc:
        raise NotFound("No project found with given id") from exc
    except StorageError as exc:
        raise Internal("Could not save query.") from exc
    return QueryResponse.from_query(query)


@router.patch("/queries/{query_id}", response_model=QueryResponse)
def update_query(
    request: Request,
    query_id: int,
    body: QueryPatch,
    ctx: AuthContext = Depends(get_auth_context),
    gate: AuthGate = Depends(get_gate),
) -> QueryResponse:
    query = _load_query(request, query_id)
    gate.require_role(ctx.user_id, query.project_id, Role.EDITOR)
    query_store: QueryStore = request.app.state.query_store
    try:
        updated = query_store.update(query_id, body.string)
    except RecordNotFound as exc:
        raise NotFound("Query not found") from exc
    except StorageError as exc:
        raise Internal("Could not update query.") from exc
    return QueryResponse.from_query(updated)


@router.delete("/queries/{query_id}", response_model=QueryResponse)
def delete_query(
    request: Request,
    query_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    gate: AuthGate = Depends(get_gate),
) -> QueryResponse:
    query = _load_query(request, query_id)
    gate.require_role(ctx.user_id, query.project_id, Role.EDITOR)
    query_store: QueryStore = request.app.state.query_store
    try:
        deleted = query_store.delete(query_id)
    except RecordNotFound as exc:
        raise NotFound("Query not found") from exc
    except StorageError as exc:
        raise Internal("Could not delete query.") from exc
    return QueryResponse.from_query(deleted)


@router.post("/queries/{query_id}/run", response_model=QueryResponse)
def run_query(
    request: Request,
    query_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    gate: AuthGate = Depends(get_gate),
) -> QueryResponse:
    """Run the query on the analysis peer and cache its result."""
    query = _load_query(request, query_id)
    gate.require_role(ctx.user_id, query.project_id, Role.READER)
    project = load_project(request, query.project_id)

    peer: AnalysisBackend = request.app.state.peer
    payload = {
        "user_id": ctx.user_id,
        "query_id": query.id,
        "query": query.string,
        "components_info": project.components_info,
    }
    try:
        result = peer.send_query(payload)
    except PeerError as exc:
        raise Internal("The analysis engine could not run the query.") from exc

    query_store: QueryStore = request.app.state.query_store
    try:
        saved = query_store.save_result(query_id, result, project.components_info)
    except RecordNotFound as exc:
        raise NotFound("Query not found") from exc
    except StorageError as exc:
        raise Internal("Could not save query result.") from exc
    if saved.outdated:
        logger.info("Query %s result stored as outdated: project changed during the run", query_id)
    return QueryResponse.from_query(saved)
