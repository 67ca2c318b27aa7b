"""
db/schema.py -- SQLAlchemy Core table definitions for every ModelGate entity.

All tables share one MetaData so foreign keys resolve and one engine can
create the whole schema. Declarative ON DELETE CASCADE is kept for engines
that honour it, but the stores also delete dependents explicitly before
principals inside one transaction, so correctness never hinges on the
engine's cascade support (SQLite ignores it unless PRAGMA foreign_keys=ON).

Column conventions follow the rest of the codebase: timestamps are ISO 8601
strings, booleans are 0/1 integers, structured payloads are JSON text.
"""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, UniqueConstraint

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(32), nullable=False),
    Column("email", String(255), nullable=False),
    Column("password", Text, nullable=False),  # bcrypt digest, never plaintext
    UniqueConstraint("username", name="uq_users_username"),
    UniqueConstraint("email", name="uq_users_email"),
)

sessions = Table(
    "sessions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("access_token", Text, nullable=False),
    Column("refresh_token", Text, nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("access_token", name="uq_sessions_access_token"),
    UniqueConstraint("refresh_token", name="uq_sessions_refresh_token"),
)

projects = Table(
    "projects",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("owner_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("components_info", Text, nullable=False),  # JSON object
    UniqueConstraint("owner_id", "name", name="uq_projects_owner_name"),
)

access = Table(
    "access",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("role", String(20), nullable=False),  # "Reader" | "Commenter" | "Editor"
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("project_id", Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
    UniqueConstraint("user_id", "project_id", name="uq_access_user_project"),
)

queries = Table(
    "queries",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project_id", Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
    Column("string", Text, nullable=False),
    Column("result", Text),  # JSON, NULL until the query has been run
    Column("outdated", Integer, nullable=False, server_default="0"),
)
