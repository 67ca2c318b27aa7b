"""
db/engine.py -- Engine construction and storage error translation.

SQLAlchemy provides the database-agnostic abstraction: swapping SQLite for
PostgreSQL is a connection string change, not a rewrite. The per-engine
differences (connect args, PRAGMAs, pooling for in-memory databases) live in
one small backend object per engine, chosen once from the URL when the engine
is built. Stores only ever see the resulting Engine.

translate_errors() is the single place where raw SQLAlchemy exceptions become
db.errors kinds. Every store method runs its statements inside it.

Usage:
    engine = create_db_engine("sqlite:///modelgate.db")
    init_schema(engine)
    users = UserStore(engine)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from db.errors import ConnectionFailure, ConstraintViolation
from db.schema import metadata

logger = logging.getLogger("modelgate.db")

# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


class DatabaseBackend(Protocol):
    name: str

    def engine_kwargs(self, db_url: str) -> dict: ...

    def configure(self, engine: Engine) -> None: ...


def _sqlite_on_connect(dbapi_conn, connection_record) -> None:
    """Enable WAL and foreign keys on every new SQLite connection.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class SQLiteBackend:
    name = "sqlite"

    def engine_kwargs(self, db_url: str) -> dict:
        # check_same_thread=False: FastAPI runs sync handlers in a thread pool,
        # so one pooled connection may be used from several threads over time.
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            # A plain :memory: database exists per connection; StaticPool keeps
            # exactly one so every thread sees the same schema and rows.
            kwargs["poolclass"] = StaticPool
        return kwargs

    def configure(self, engine: Engine) -> None:
        event.listen(engine, "connect", _sqlite_on_connect)


class PostgresBackend:
    name = "postgresql"

    def engine_kwargs(self, db_url: str) -> dict:
        return {"pool_pre_ping": True}

    def configure(self, engine: Engine) -> None:
        pass


def backend_for(db_url: str) -> DatabaseBackend:
    """Select the backend implementation for a connection string."""
    if db_url.startswith("sqlite"):
        return SQLiteBackend()
    if db_url.startswith(("postgresql", "postgres")):
        return PostgresBackend()
    raise ValueError(f"Unsupported database URL scheme: {db_url.split(':', 1)[0]!r}")


def create_db_engine(db_url: str) -> Engine:
    """Build an Engine for db_url with its backend-specific configuration applied."""
    backend = backend_for(db_url)
    engine = create_engine(db_url, **backend.engine_kwargs(db_url))
    backend.configure(engine)
    logger.info("Database engine created (backend=%s)", backend.name)
    return engine


def init_schema(engine: Engine) -> None:
    """Create every missing table. Idempotent -- safe to call on each startup."""
    with translate_errors():
        metadata.create_all(engine)


def ping(engine: Engine) -> bool:
    """Return True if a trivial statement succeeds against the database."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as exc:
        logger.warning("Database ping failed: %s", exc)
        return False


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

# SQLite:     "UNIQUE constraint failed: users.email"
# PostgreSQL: 'duplicate key value violates unique constraint "uq_users_email"
#              DETAIL:  Key (email)=(a@b.com) already exists.'
_SQLITE_COLUMNS = re.compile(r"constraint failed: ([\w., ]+)")
_PG_COLUMNS = re.compile(r"Key \(([^)]+)\)=")


def _constraint_violation(exc: IntegrityError) -> ConstraintViolation:
    message = str(exc.orig) if exc.orig is not None else str(exc)
    lowered = message.lower()
    if "unique" in lowered or "duplicate key" in lowered:
        kind = "unique"
    elif "foreign key" in lowered:
        kind = "foreign_key"
    elif "not null" in lowered or "null value" in lowered:
        kind = "not_null"
    else:
        kind = "other"

    columns: tuple[str, ...] = ()
    match = _SQLITE_COLUMNS.search(message) or _PG_COLUMNS.search(message)
    if match:
        columns = tuple(part.strip().split(".")[-1] for part in match.group(1).split(","))
    return ConstraintViolation(message, kind=kind, columns=columns)


@contextmanager
def translate_errors() -> Iterator[None]:
    """Re-raise SQLAlchemy errors as db.errors kinds.

    IntegrityError -> ConstraintViolation (with kind and columns)
    any other DBAPIError / SQLAlchemyError -> ConnectionFailure
    """
    try:
        yield
    except IntegrityError as exc:
        raise _constraint_violation(exc) from exc
    except DBAPIError as exc:
        logger.error("Database error: %s", exc.orig if exc.orig is not None else exc)
        raise ConnectionFailure(str(exc.orig) if exc.orig is not None else str(exc)) from exc
    except SQLAlchemyError as exc:
        logger.error("Database error: %s", exc)
        raise ConnectionFailure(str(exc)) from exc
