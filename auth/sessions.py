"""
auth/sessions.py -- Session persistence and token rotation.

One row per issuance event: (user_id, access_token, refresh_token, updated_at).
Login inserts a row; refresh overwrites both token columns of that row; logout
(or an expired refresh token) deletes it.

Concurrency contract:
  Every mutation runs in a single transaction (engine.begin()). Rotation is a
  compare-and-swap: UPDATE ... WHERE refresh_token = :presented is the first
  statement of its transaction, so the database serialises concurrent
  rotations of the same token. Exactly one UPDATE matches the row; the other
  finds no row with the (already overwritten) token and raises RecordNotFound.
  No read-then-write window exists in which two callers can both observe the
  old token and both win.

  delete_by_token() selects and deletes inside one transaction and re-checks
  the token in the DELETE's WHERE clause, so a concurrent rotation between the
  two statements makes the delete match nothing (RecordNotFound) rather than
  removing the freshly rotated session.

Layer rule: no imports from api/, projects/, or peer/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete
from sqlalchemy.engine import Engine

from auth.models import Session, TokenPair
from auth.tokens import TokenCodec, TokenKind
from db import schema
from db.engine import translate_errors
from db.errors import RecordNotFound

logger = logging.getLogger("modelgate.sessions")

_sessions = schema.sessions


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _token_column(kind: TokenKind):
    return _sessions.c.access_token if kind is TokenKind.ACCESS else _sessions.c.refresh_token


class SessionStore:
    """Repository for Session entities, with token issuance built in.

    Usage:
        sessions = SessionStore(engine, TokenCodec(settings))
        session = sessions.create(user_id)
        session = sessions.rotate(session.refresh_token, user_id)
        sessions.delete_by_token(TokenKind.ACCESS, session.access_token)
    """

    def __init__(self, engine: Engine, codec: TokenCodec) -> None:
        self.engine = engine
        self.codec = codec

    def issue_pair(self, user_id: int) -> TokenPair:
        return TokenPair(
            access_token=self.codec.issue(TokenKind.ACCESS, user_id),
            refresh_token=self.codec.issue(TokenKind.REFRESH, user_id),
        )

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    def create(self, user_id: int) -> Session:
        """Issue a fresh token pair for user_id and persist it as a new session.

        Raises ConstraintViolation (kind "foreign_key") if the user does not exist.
        """
        pair = self.issue_pair(user_id)
        updated_at = _now_iso()
        with translate_errors(), self.engine.begin() as conn:
            result = conn.execute(
                _sessions.insert().values(
                    user_id=user_id,
                    access_token=pair.access_token,
                    refresh_token=pair.refresh_token,
                    updated_at=updated_at,
                )
            )
            session_id = result.inserted_primary_key[0]
        logger.info("Session %s created for user %s", session_id, user_id)
        return Session(
            id=session_id,
            user_id=user_id,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            updated_at=updated_at,
        )

    def find_by_token(self, kind: TokenKind, token: str) -> Session | None:
        """Exact-match lookup on the column that corresponds to kind."""
        with translate_errors(), self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_token_column(kind) == token)).fetchone()
        return _row_to_session(row) if row is not None else None

    def get_by_id(self, session_id: int) -> Session | None:
        with translate_errors(), self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.id == session_id)).fetchone()
        return _row_to_session(row) if row is not None else None

    def get_all(self) -> list[Session]:
        with translate_errors(), self.engine.connect() as conn:
            rows = conn.execute(_sessions.select().order_by(_sessions.c.id)).fetchall()
        return [_row_to_session(r) for r in rows]

    def get_by_user(self, user_id: int) -> list[Session]:
        with translate_errors(), self.engine.connect() as conn:
            rows = conn.execute(
                _sessions.select().where(_sessions.c.user_id == user_id).order_by(_sessions.c.id)
            ).fetchall()
        return [_row_to_session(r) for r in rows]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def replace(self, session_id: int, new_access: str, new_refresh: str) -> Session:
        """Overwrite both token fields and the timestamp of an existing session.

        id and user_id are immutable. Raises RecordNotFound if session_id does
        not exist.
        """
        with translate_errors(), self.engine.begin() as conn:
            result = conn.execute(
                _sessions.update()
                .where(_sessions.c.id == session_id)
                .values(access_token=new_access, refresh_token=new_refresh, updated_at=_now_iso())
            )
            if result.rowcount == 0:
                raise RecordNotFound(f"No session with id {session_id}")
            row = conn.execute(_sessions.select().where(_sessions.c.id == session_id)).fetchone()
        return _row_to_session(row)

    def rotate(self, refresh_token: str, user_id: int) -> Session:
        """Atomically swap the session holding refresh_token onto a new token pair.

        user_id is the subject already verified from the token's signature. The
        presented token is the guard of the UPDATE itself, so a token can be
        consumed at most once. Raises RecordNotFound if no session of user_id
        currently holds refresh_token (never issued, logged out, or already
        rotated).
        """
        pair = self.issue_pair(user_id)
        with translate_errors(), self.engine.begin() as conn:
            # Guarded write first; a read before it would let two callers see the old token.
            result = conn.execute(
                _sessions.update()
                .where((_sessions.c.refresh_token == refresh_token) & (_sessions.c.user_id == user_id))
                .values(access_token=pair.access_token, refresh_token=pair.refresh_token, updated_at=_now_iso())
            )
            if result.rowcount != 1:
                raise RecordNotFound("No session found with given refresh token")
            row = conn.execute(_sessions.select().where(_sessions.c.refresh_token == pair.refresh_token)).fetchone()
        session = _row_to_session(row)
        logger.info("Session %s rotated for user %s", session.id, session.user_id)
        return session

    def delete_by_token(self, kind: TokenKind, token: str) -> Session:
        """Look up the session holding token and delete it; return the deleted row.

        Raises RecordNotFound if no session matches.
        """
        column = _token_column(kind)
        with translate_errors(), self.engine.begin() as conn:
            row = conn.execute(_sessions.select().where(column == token)).fetchone()
            if row is None:
                raise RecordNotFound(f"No session found with given {kind.value} token")
            result = conn.execute(delete(_sessions).where((_sessions.c.id == row.id) & (column == token)))
            if result.rowcount == 0:
                raise RecordNotFound(f"No session found with given {kind.value} token")
        logger.info("Session %s deleted for user %s", row.id, row.user_id)
        return _row_to_session(row)

    def delete(self, session_id: int) -> Session:
        with translate_errors(), self.engine.begin() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.id == session_id)).fetchone()
            if row is None:
                raise RecordNotFound(f"No session with id {session_id}")
            conn.execute(delete(_sessions).where(_sessions.c.id == session_id))
        return _row_to_session(row)


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        access_token=row.access_token,
        refresh_token=row.refresh_token,
        updated_at=row.updated_at,
    )
