"""
api/routes/v1/analysis.py -- Passthrough to the analysis peer.

Routes (all require a live access token):
  POST /api/v1/analysis/user-token         -> peer.get_user_token
  POST /api/v1/analysis/query              -> peer.send_query
  POST /api/v1/analysis/simulation/start   -> peer.start_simulation
  POST /api/v1/analysis/simulation/step    -> peer.take_simulation_step

The JSON body is forwarded verbatim and the peer's JSON object returned
unchanged. A body carrying "project_id" is project-scoped: it must be an
integer, and the caller needs Reader on that project before anything is
forwarded.
"""

from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, Body, Depends, Request

from api.routes.v1.projects import load_project
from auth.dependencies import get_auth_context, get_gate
from auth.gate import AuthGate
from auth.models import AuthContext
from core.errors import Internal, InvalidArgument
from peer.client import AnalysisBackend, PeerError
from projects.models import Role

router = APIRouter()


def _forward(
    request: Request,
    ctx: AuthContext,
    gate: AuthGate,
    payload: dict[str, Any],
    call: Callable[[AnalysisBackend, dict[str, Any]], dict[str, Any]],
) -> dict[str, Any]:
    project_id = payload.get("project_id")
    if project_id is not None:
        if not isinstance(project_id, int) or isinstance(project_id, bool):
            raise InvalidArgument("project_id must be an integer.")
        load_project(request, project_id)
        gate.require_role(ctx.user_id, project_id, Role.READER)
    try:
        return call(request.app.state.peer, payload)
    except PeerError as exc:
        raise Internal("The analysis engine is unavailable.") from exc


@router.post("/analysis/user-token")
def get_user_token(
    request: Request,
    payload: dict[str, Any] = Body(default={}),
    ctx: AuthContext = Depends(get_auth_context),
    gate: AuthGate = Depends(get_gate),
) -> dict[str, Any]:
    return _forward(request, ctx, gate, payload, lambda peer, body: peer.get_user_token(body))


@router.post("/analysis/query")
def send_query(
    request: Request,
    payload: dict[str, Any] = Body(default={}),
    ctx: AuthContext = Depends(get_auth_context),
    gate: AuthGate = Depends(get_gate),
) -> dict[str, Any]:
    return _forward(request, ctx, gate, payload, lambda peer, body: peer.send_query(body))


@router.post("/analysis/simulation/start")
def start_simulation(
    request: Request,
    payload: dict[str, Any] = Body(default={}),
    ctx: AuthContext = Depends(get_auth_context),
    gate: AuthGate = Depends(get_gate),
) -> dict[str, Any]:
    return _forward(request, ctx, gate, payload, lambda peer, body: peer.start_simulation(body))


@router.post("/analysis/simulation/step")
def take_simulation_step(
    request: Request,
    payload: dict[str, Any] = Body(default={}),
    ctx: AuthContext = Depends(get_auth_context),
    gate: AuthGate = Depends(get_gate),
) -> dict[str, Any]:
    return _forward(request, ctx, gate, payload, lambda peer, body: peer.take_simulation_step(body))
