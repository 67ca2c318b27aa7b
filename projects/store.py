"""
projects/store.py -- SQLAlchemy Core persistence for projects, access and queries.

Pattern: Repository + Data Mapper, one repository per table, all sharing the
engine built in api/main.py lifespan.

Atomic units:
  ProjectStore.create()  -- project row + the creator's Editor access row.
  ProjectStore.update()  -- query invalidation + project write. When
      components_info changes, every query of the project is marked
      outdated in the same transaction as the new payload; a failure in
      either statement rolls back both.
  ProjectStore.delete()  -- queries, access rows, then the project.

JSON payloads (components_info, query results) are stored as text and
decoded in the mappers; the rest of the code only sees Python objects.

Layer rule: no imports from api/, auth/, or peer/.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.engine import Connection, Engine

from db import schema
from db.engine import translate_errors
from db.errors import RecordNotFound
from projects.models import Access, Decision, Project, ProjectInfo, Query, Role, decide

logger = logging.getLogger("modelgate.projects")

_projects = schema.projects
_access = schema.access
_queries = schema.queries

_PROJECT_FIELDS = {"name", "components_info", "owner_id"}


class ProjectStore:
    """Repository for Project entities.

    Usage:
        store = ProjectStore(engine)
        project = store.create(Project(name="train", owner_id=uid, components_info={...}))
        store.update(project.id, components_info={...})   # invalidates its queries
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create(self, project: Project) -> Project:
        """Insert the project and give its owner an Editor access row.

        Raises ConstraintViolation on an (owner_id, name) clash or an unknown owner.
        """
        with translate_errors(), self.engine.begin() as conn:
            result = conn.execute(
                _projects.insert().values(
                    name=project.name,
                    owner_id=project.owner_id,
                    components_info=json.dumps(project.components_info),
                )
            )
            project_id = result.inserted_primary_key[0]
            conn.execute(
                _access.insert().values(role=Role.EDITOR.value, user_id=project.owner_id, project_id=project_id)
            )
        logger.info("Project %s created by user %s", project_id, project.owner_id)
        return Project(
            id=project_id,
            name=project.name,
            owner_id=project.owner_id,
            components_info=project.components_info,
        )

    def get_by_id(self, project_id: int) -> Project | None:
        with translate_errors(), self.engine.connect() as conn:
            row = conn.execute(_projects.select().where(_projects.c.id == project_id)).fetchone()
        return _row_to_project(row) if row is not None else None

    def get_all(self) -> list[Project]:
        with translate_errors(), self.engine.connect() as conn:
            rows = conn.execute(_projects.select().order_by(_projects.c.id)).fetchall()
        return [_row_to_project(r) for r in rows]

    def list_for_user(self, user_id: int) -> list[ProjectInfo]:
        """Every project user_id holds an access row on, with that role."""
        stmt = (
            select(_projects.c.id, _projects.c.name, _projects.c.owner_id, _access.c.role)
            .select_from(_projects.join(_access, _access.c.project_id == _projects.c.id))
            .where(_access.c.user_id == user_id)
            .order_by(_projects.c.id)
        )
        with translate_errors(), self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [
            ProjectInfo(project_id=r.id, name=r.name, owner_id=r.owner_id, role=Role(r.role))
            for r in rows
        ]

    def update(self, project_id: int, **fields: Any) -> Project:
        """Update any subset of name, components_info and owner_id.

        A new components_info marks every query of the project outdated in the
        same transaction. A new owner_id gets (or is promoted to) an Editor
        access row. Raises RecordNotFound if the project does not exist and
        ConstraintViolation on a name clash or unknown owner; nothing is
        committed in either case.
        """
        unknown = set(fields) - _PROJECT_FIELDS
        if unknown:
            raise ValueError(f"Unknown project fields: {unknown!r}")
        values = dict(fields)
        if "components_info" in values:
            values["components_info"] = json.dumps(values["components_info"])

        with translate_errors(), self.engine.begin() as conn:
            if "components_info" in values:
                invalidated = conn.execute(
                    _queries.update().where(_queries.c.project_id == project_id).values(outdated=1)
                ).rowcount
                logger.info("Project %s changed: %d queries marked outdated", project_id, invalidated)
            if values:
                result = conn.execute(_projects.update().where(_projects.c.id == project_id).values(**values))
                if result.rowcount == 0:
                    raise RecordNotFound(f"No project with id {project_id}")
            if "owner_id" in values:
                _grant_editor(conn, values["owner_id"], project_id)
            row = conn.execute(_projects.select().where(_projects.c.id == project_id)).fetchone()
        if row is None:
            raise RecordNotFound(f"No project with id {project_id}")
        return _row_to_project(row)

    def delete(self, project_id: int) -> Project:
        """Delete the project with its queries and access rows; return the project."""
        with translate_errors(), self.engine.begin() as conn:
            row = conn.execute(_projects.select().where(_projects.c.id == project_id)).fetchone()
            if row is None:
                raise RecordNotFound(f"No project with id {project_id}")
            conn.execute(delete(_queries).where(_queries.c.project_id == project_id))
            conn.execute(delete(_access).where(_access.c.project_id == project_id))
            conn.execute(delete(_projects).where(_projects.c.id == project_id))
        logger.info("Project %s deleted", project_id)
        return _row_to_project(row)


def _grant_editor(conn: Connection, user_id: int, project_id: int) -> None:
    result = conn.execute(
        _access.update()
        .where((_access.c.user_id == user_id) & (_access.c.project_id == project_id))
        .values(role=Role.EDITOR.value)
    )
    if result.rowcount == 0:
        conn.execute(_access.insert().values(role=Role.EDITOR.value, user_id=user_id, project_id=project_id))


class AccessStore:
    """Repository for Access rows and the authorization check built on them."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create(self, access: Access) -> Access:
        """Raises ConstraintViolation if the user already has a role on the project."""
        with translate_errors(), self.engine.begin() as conn:
            result = conn.execute(
                _access.insert().values(role=access.role.value, user_id=access.user_id, project_id=access.project_id)
            )
            access_id = result.inserted_primary_key[0]
        return Access(id=access_id, role=access.role, user_id=access.user_id, project_id=access.project_id)

    def get_by_id(self, access_id: int) -> Access | None:
        with translate_errors(), self.engine.connect() as conn:
            row = conn.execute(_access.select().where(_access.c.id == access_id)).fetchone()
        return _row_to_access(row) if row is not None else None

    def get_all(self) -> list[Access]:
        with translate_errors(), self.engine.connect() as conn:
            rows = conn.execute(_access.select().order_by(_access.c.id)).fetchall()
        return [_row_to_access(r) for r in rows]

    def get_by_user_and_project(self, user_id: int, project_id: int) -> Access | None:
        with translate_errors(), self.engine.connect() as conn:
            row = conn.execute(
                _access.select().where((_access.c.user_id == user_id) & (_access.c.project_id == project_id))
            ).fetchone()
        return _row_to_access(row) if row is not None else None

    def list_for_project(self, project_id: int) -> list[Access]:
        with translate_errors(), self.engine.connect() as conn:
            rows = conn.execute(
                _access.select().where(_access.c.project_id == project_id).order_by(_access.c.id)
            ).fetchall()
        return [_row_to_access(r) for r in rows]

    def update(self, access_id: int, role: Role) -> Access:
        """Change the role of an access row. user_id and project_id are immutable."""
        with translate_errors(), self.engine.begin() as conn:
            result = conn.execute(_access.update().where(_access.c.id == access_id).values(role=role.value))
            if result.rowcount == 0:
                raise RecordNotFound(f"No access with id {access_id}")
            row = conn.execute(_access.select().where(_access.c.id == access_id)).fetchone()
        return _row_to_access(row)

    def delete(self, access_id: int) -> Access:
        with translate_errors(), self.engine.begin() as conn:
            row = conn.execute(_access.select().where(_access.c.id == access_id)).fetchone()
            if row is None:
                raise RecordNotFound(f"No access with id {access_id}")
            conn.execute(delete(_access).where(_access.c.id == access_id))
        return _row_to_access(row)

    def authorize(self, user_id: int, project_id: int, minimum_role: Role) -> Decision:
        """Allowed iff user_id holds a role >= minimum_role on project_id."""
        return decide(self.get_by_user_and_project(user_id, project_id), minimum_role)


class QueryStore:
    """Repository for Query rows (query text plus cached peer result)."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create(self, query: Query) -> Query:
        """Insert a fresh query: result None, outdated False.

        Raises ConstraintViolation if the project does not exist.
        """
        with translate_errors(), self.engine.begin() as conn:
            result = conn.execute(
                _queries.insert().values(project_id=query.project_id, string=query.string, result=None, outdated=0)
            )
            query_id = result.inserted_primary_key[0]
        return Query(id=query_id, project_id=query.project_id, string=query.string)

    def get_by_id(self, query_id: int) -> Query | None:
        with translate_errors(), self.engine.connect() as conn:
            row = conn.execute(_queries.select().where(_queries.c.id == query_id)).fetchone()
        return _row_to_query(row) if row is not None else None

    def get_all(self) -> list[Query]:
        with translate_errors(), self.engine.connect() as conn:
            rows = conn.execute(_queries.select().order_by(_queries.c.id)).fetchall()
        return [_row_to_query(r) for r in rows]

    def list_for_project(self, project_id: int) -> list[Query]:
        with translate_errors(), self.engine.connect() as conn:
            rows = conn.execute(
                _queries.select().where(_queries.c.project_id == project_id).order_by(_queries.c.id)
            ).fetchall()
        return [_row_to_query(r) for r in rows]

    def update(self, query_id: int, string: str) -> Query:
        """Replace the query text. The cached result and outdated flag are kept."""
        with translate_errors(), self.engine.begin() as conn:
            result = conn.execute(_queries.update().where(_queries.c.id == query_id).values(string=string))
            if result.rowcount == 0:
                raise RecordNotFound(f"No query with id {query_id}")
            row = conn.execute(_queries.select().where(_queries.c.id == query_id)).fetchone()
        return _row_to_query(row)

    def save_result(self, query_id: int, result: Any, components_info: Any) -> Query:
        """Store a peer result computed against components_info.

        The row is marked fresh only if the project's current components_info
        still equals the payload the result was computed from; a project
        change that landed while the peer was working leaves it outdated.
        """
        with translate_errors(), self.engine.begin() as conn:
            # Write first so this transaction holds the lock before it reads the project.
            written = conn.execute(
                _queries.update().where(_queries.c.id == query_id).values(result=json.dumps(result), outdated=1)
            )
            if written.rowcount == 0:
                raise RecordNotFound(f"No query with id {query_id}")
            current = conn.execute(
                select(_projects.c.components_info)
                .select_from(_projects.join(_queries, _queries.c.project_id == _projects.c.id))
                .where(_queries.c.id == query_id)
            ).scalar()
            if current is not None and json.loads(current) == components_info:
                conn.execute(_queries.update().where(_queries.c.id == query_id).values(outdated=0))
            row = conn.execute(_queries.select().where(_queries.c.id == query_id)).fetchone()
        return _row_to_query(row)

    def delete(self, query_id: int) -> Query:
        with translate_errors(), self.engine.begin() as conn:
            row = conn.execute(_queries.select().where(_queries.c.id == query_id)).fetchone()
            if row is None:
                raise RecordNotFound(f"No query with id {query_id}")
            conn.execute(delete(_queries).where(_queries.c.id == query_id))
        return _row_to_query(row)


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_project(row) -> Project:
    return Project(
        id=row.id,
        name=row.name,
        owner_id=row.owner_id,
        components_info=json.loads(row.components_info),
    )


def _row_to_access(row) -> Access:
    return Access(id=row.id, role=Role(row.role), user_id=row.user_id, project_id=row.project_id)


def _row_to_query(row) -> Query:
    return Query(
        id=row.id,
        project_id=row.project_id,
        string=row.string,
        result=json.loads(row.result) if row.result is not None else None,
        outdated=bool(row.outdated),
    )
