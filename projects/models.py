"""
projects/models.py -- Domain dataclasses and role ordering for shared projects.

Role is a total order: READER < COMMENTER < EDITOR. decide() is the whole
authorization rule; AccessStore.authorize() and AuthGate.require_role() both
defer to it so the ordering lives in exactly one place.

Layer rule: no imports from api/, auth/, or peer/.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional


class Role(str, enum.Enum):
    """Authorization level on a project. Values are the persisted strings."""

    READER = "Reader"
    COMMENTER = "Commenter"
    EDITOR = "Editor"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def at_least(self, minimum: "Role") -> bool:
        return self.rank >= minimum.rank


_RANKS = {Role.READER: 0, Role.COMMENTER: 1, Role.EDITOR: 2}


class Decision(str, enum.Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


def decide(access: Optional["Access"], minimum_role: Role) -> Decision:
    """Allowed iff an access row exists and its role is >= minimum_role."""
    if access is None:
        return Decision.DENIED
    return Decision.ALLOWED if access.role.at_least(minimum_role) else Decision.DENIED


@dataclass
class Project:
    """A shared model project.

    components_info is the opaque structured payload the analysis peer
    consumes. Changing it invalidates every cached query of the project.
    """

    name: str
    owner_id: int
    components_info: Any = field(default_factory=dict)
    id: Optional[int] = None


@dataclass
class Access:
    """One role assignment; (user_id, project_id) is unique."""

    role: Role
    user_id: int
    project_id: int
    id: Optional[int] = None


@dataclass
class Query:
    """A query string against a project plus its cached peer result.

    outdated starts False and flips True whenever the owning project's
    components_info changes; only a re-run clears it.
    """

    project_id: int
    string: str
    result: Any = None
    outdated: bool = False
    id: Optional[int] = None


@dataclass
class ProjectInfo:
    """A project as seen by one user: the listing row for GET /projects."""

    project_id: int
    name: str
    owner_id: int
    role: Role
