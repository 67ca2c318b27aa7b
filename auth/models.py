"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the gate do
the work; these own the domain shape.

Layer rule: no imports from api/, projects/, or peer/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered identity.

    password holds the bcrypt digest, never the plaintext. id is None before
    the record is written to the database.
    """

    username: str
    email: str
    password: str
    id: int | None = None


@dataclass
class Session:
    """One issuance of an access/refresh token pair for a user.

    A refresh overwrites both token columns and updated_at in place; id and
    user_id never change. The previous pair stops matching any row the moment
    the overwrite commits.
    """

    user_id: int
    access_token: str
    refresh_token: str
    updated_at: str = ""  # ISO 8601, set by store on every write
    id: int | None = None


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AuthContext:
    """Identity resolved from a live access token."""

    user_id: int
    session_id: int
    access_token: str
