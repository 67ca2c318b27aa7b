"""
api/routes/v1/auth.py -- Login, token refresh and logout endpoints.

Routes:
  POST /api/v1/auth/login    -- username|email + password -> token pair
  POST /api/v1/auth/refresh  -- Bearer refresh token, empty body -> new token pair
  POST /api/v1/auth/logout   -- Bearer access token -> 204

Security:
  Login and refresh are rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  Login returns the same error for a missing user and a wrong password.
  Cache-Control: no-store on every response that carries tokens.
  The refresh token is consumed by a successful refresh; replaying it is 401.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit
from api.models import LoginRequest, TokenPairResponse
from auth.dependencies import bearer_token, get_gate
from auth.gate import AuthGate
from auth.models import TokenPair

# Auth policy:
# - POST /api/v1/auth/login:    public -- credentials in the body
# - POST /api/v1/auth/refresh:  refresh token in Authorization header
# - POST /api/v1/auth/logout:   access token in Authorization header
router = APIRouter()


def _token_response(pair: TokenPair) -> JSONResponse:
    resp = JSONResponse(
        status_code=200,
        content=TokenPairResponse(access_token=pair.access_token, refresh_token=pair.refresh_token).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(login_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=TokenPairResponse)
def login(request: Request, body: LoginRequest, gate: AuthGate = Depends(get_gate)) -> JSONResponse:
    """Authenticate with exactly one of username/email plus password."""
    pair = gate.login(body.password, username=body.username, email=body.email)
    return _token_response(pair)


@limiter.limit(login_limit)
@router.post("/auth/refresh", response_model=TokenPairResponse)
def refresh(request: Request, gate: AuthGate = Depends(get_gate)) -> JSONResponse:
    """Exchange the refresh token in the Authorization header for a new pair."""
    pair = gate.refresh(bearer_token(request))
    return _token_response(pair)


@router.post("/auth/logout", status_code=204)
def logout(request: Request, gate: AuthGate = Depends(get_gate)) -> Response:
    """Delete the session that owns the presented access token."""
    gate.logout(bearer_token(request))
    return Response(status_code=204)
