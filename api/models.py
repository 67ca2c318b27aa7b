"""
API request and response models for ModelGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
projects/models.py, which own the internal domain representation. Route
handlers map between the two.

Separation of concerns: domain dataclasses = domain truth; api/ models = API contract.
"""

from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from projects.models import Access, Project, ProjectInfo, Query

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

USERNAME_PATTERN = r"^[A-Za-z0-9_]{3,32}$"
EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

# Identifiers are trimmed; passwords are hashed exactly as typed.
TrimmedStr = Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    Reader = "Reader"
    Commenter = "Commenter"
    Editor = "Editor"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    Exactly one of username/email; the gate rejects none or both with
    invalid_argument rather than a validation error so the rule lives in one place.
    """

    username: Optional[TrimmedStr] = None
    email: Optional[TrimmedStr] = None
    password: str = Field(min_length=1, max_length=1024)


class TokenPairResponse(BaseModel):
    """Response for login and refresh."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users (public signup)."""

    username: TrimmedStr
    email: TrimmedStr
    password: str = Field(min_length=1)


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/users/me. Every field is optional."""

    username: Optional[TrimmedStr] = None
    email: Optional[TrimmedStr] = None
    password: Optional[str] = Field(default=None, min_length=1)


class UserResponse(BaseModel):
    """Full user info, returned only to the user themselves."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str


class UserSummary(BaseModel):
    """Public user info for GET /api/v1/users?ids=..."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class ProjectCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    components_info: Optional[dict[str, Any]] = None


class ProjectPatch(BaseModel):
    """Request body for PATCH /api/v1/projects/{id}. Every field is optional."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    components_info: Optional[dict[str, Any]] = None
    owner_id: Optional[int] = None


class ProjectResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    owner_id: int
    components_info: dict[str, Any]

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.id,
            name=project.name,
            owner_id=project.owner_id,
            components_info=project.components_info,
        )


class QueryResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    project_id: int
    string: str
    result: Optional[Any] = None
    outdated: bool

    @classmethod
    def from_query(cls, query: Query) -> "QueryResponse":
        return cls(
            id=query.id,
            project_id=query.project_id,
            string=query.string,
            result=query.result,
            outdated=query.outdated,
        )


class ProjectDetailResponse(BaseModel):
    """Response for GET /api/v1/projects/{id}: the project and its queries."""

    model_config = ConfigDict(frozen=True)

    project: ProjectResponse
    queries: list[QueryResponse]


class ProjectInfoResponse(BaseModel):
    """One row of GET /api/v1/projects -- a project plus the caller's role on it."""

    model_config = ConfigDict(frozen=True)

    project_id: int
    name: str
    owner_id: int
    role: RoleEnum

    @classmethod
    def from_info(cls, info: ProjectInfo) -> "ProjectInfoResponse":
        return cls(project_id=info.project_id, name=info.name, owner_id=info.owner_id, role=info.role.value)


# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------


class AccessCreate(BaseModel):
    """Request body for POST /api/v1/projects/{id}/access.

    The target user is named by exactly one of user_id, username or email.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    role: RoleEnum
    user_id: Optional[int] = None
    username: Optional[str] = None
    email: Optional[str] = None


class AccessPatch(BaseModel):
    role: RoleEnum


class AccessResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    role: RoleEnum
    user_id: int
    project_id: int

    @classmethod
    def from_access(cls, access: Access) -> "AccessResponse":
        return cls(id=access.id, role=access.role.value, user_id=access.user_id, project_id=access.project_id)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class QueryCreate(BaseModel):
    project_id: int
    string: str = Field(min_length=1)


class QueryPatch(BaseModel):
    string: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
