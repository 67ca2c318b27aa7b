"""
auth/store.py -- SQLAlchemy Core persistence for users.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route and gate code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Errors: every method raises only db.errors kinds. A unique clash on username
or email surfaces as ConstraintViolation whose columns name the field; the
user-creation route turns that into a field-specific AlreadyExists.

Deleting a user removes, in one transaction and dependents first: the user's
sessions, the user's access rows, the queries and access rows of projects the
user owns, those projects, and finally the user row.

Layer rule: no imports from api/ or peer/.
"""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine

from auth.models import User
from db import schema
from db.engine import translate_errors
from db.errors import RecordNotFound

_users = schema.users


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(engine)
        user = store.create(User(username="alice123", email="a@b.com", password=digest))
        user = store.get_by_username("alice123")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create(self, user: User) -> User:
        """Insert a new user and return it with its assigned id.

        Raises ConstraintViolation if the username or email already exists.
        """
        with translate_errors(), self.engine.begin() as conn:
            result = conn.execute(
                _users.insert().values(username=user.username, email=user.email, password=user.password)
            )
            user_id = result.inserted_primary_key[0]
        return User(id=user_id, username=user.username, email=user.email, password=user.password)

    def get_by_id(self, user_id: int) -> User | None:
        with translate_errors(), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with translate_errors(), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        with translate_errors(), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_ids(self, user_ids: list[int]) -> list[User]:
        """Return the users whose ids are in user_ids, ordered by id. Unknown ids are skipped."""
        if not user_ids:
            return []
        with translate_errors(), self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.id.in_(user_ids)).order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def get_all(self) -> list[User]:
        with translate_errors(), self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def update(self, user_id: int, **fields) -> User:
        """Update any subset of username, email and password (digest).

        The primary key is never changed. Raises RecordNotFound if user_id does
        not exist and ConstraintViolation on a username/email clash.
        """
        unknown = set(fields) - {"username", "email", "password"}
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        with translate_errors(), self.engine.begin() as conn:
            if fields:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
                if result.rowcount == 0:
                    raise RecordNotFound(f"No user with id {user_id}")
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        if row is None:
            raise RecordNotFound(f"No user with id {user_id}")
        return _row_to_user(row)

    def delete(self, user_id: int) -> User:
        """Delete a user and everything it owns; return the deleted user.

        Raises RecordNotFound if user_id does not exist.
        """
        with translate_errors(), self.engine.begin() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            if row is None:
                raise RecordNotFound(f"No user with id {user_id}")
            owned = select(schema.projects.c.id).where(schema.projects.c.owner_id == user_id)
            conn.execute(delete(schema.sessions).where(schema.sessions.c.user_id == user_id))
            conn.execute(delete(schema.queries).where(schema.queries.c.project_id.in_(owned)))
            conn.execute(
                delete(schema.access).where(
                    (schema.access.c.user_id == user_id) | (schema.access.c.project_id.in_(owned))
                )
            )
            conn.execute(delete(schema.projects).where(schema.projects.c.owner_id == user_id))
            conn.execute(delete(_users).where(_users.c.id == user_id))
        return _row_to_user(row)


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(id=row.id, username=row.username, email=row.email, password=row.password)
