"""
core/errors.py -- Service-level error taxonomy.

Every failure that reaches a client is one of these. Storage errors
(db/errors.py) and token errors (auth/tokens.py) are translated into them at
the boundary where their business meaning is known -- e.g. a unique
constraint on users.email becomes AlreadyExists("A user with that email
already exists") only inside user creation.

api/main.py maps each class to its HTTP status and a stable error code in the
{"error": {"code", "message"}} envelope.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for errors mapped to client responses."""

    status_code: int = 500
    error_code: str = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthenticated(ServiceError):
    """Missing, invalid or expired token, or wrong credentials (401)."""

    status_code = 401
    error_code = "unauthenticated"


class PermissionDenied(ServiceError):
    """Authenticated, but the role on the project is insufficient (403)."""

    status_code = 403
    error_code = "permission_denied"


class NotFound(ServiceError):
    status_code = 404
    error_code = "not_found"


class AlreadyExists(ServiceError):
    """Unique-constraint clash on username, email, (owner, name) or (user, project)."""

    status_code = 409
    error_code = "already_exists"


class InvalidArgument(ServiceError):
    status_code = 400
    error_code = "invalid_argument"


class Internal(ServiceError):
    """Storage or connection failure, or the analysis peer is unreachable (500)."""

    status_code = 500
    error_code = "internal"


__all__ = [
    "ServiceError",
    "Unauthenticated",
    "PermissionDenied",
    "NotFound",
    "AlreadyExists",
    "InvalidArgument",
    "Internal",
]
