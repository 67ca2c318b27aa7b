"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Bearer tokens arrive in the Authorization header as "Bearer <token>". Both the
access-token routes and the refresh route read them through bearer_token().

get_gate() returns the AuthGate wired into app.state by the lifespan.
get_auth_context() wraps it and raises Unauthenticated (HTTP 401 through the
ServiceError handler in api/main.py) unless the token is a live access token.

Layer rule: no imports from api/ or peer/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.gate import AuthGate
from auth.models import AuthContext
from core.errors import Unauthenticated


def bearer_token(request: Request) -> str:
    """Return the token from "Authorization: Bearer <token>".

    A missing header, another scheme or an empty token is Unauthenticated.
    """
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise Unauthenticated("Missing bearer token.")
    return token


def get_gate(request: Request) -> AuthGate:
    return request.app.state.gate


def get_auth_context(request: Request) -> AuthContext:
    """Require a live access token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(ctx: AuthContext = Depends(get_auth_context)): ...
    """
    return get_gate(request).authenticate(bearer_token(request))
