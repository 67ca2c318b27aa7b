"""
auth/gate.py -- Authentication gate: login, refresh, logout and the role check.

Every privileged request passes through here before any project, query or
peer operation runs:

    token -> TokenCodec.validate -> live session check -> AuthContext
          -> require_role(user, project, minimum) -> store / peer call

Login and refresh follow a small state machine; each transition is logged
at DEBUG on the "modelgate.auth" logger.

    NoCredentials --credentials--> CredentialsPresented --match--> Authenticated
    NoCredentials --refresh token--> RefreshTokenPresented --rotated--> Authenticated
    any state --failure--> Rejected

Error policy:
  - Every authentication failure is Unauthenticated. Login failures share one
    message whether the user is missing or the password is wrong.
  - "No credentials at all" is Unauthenticated, never InvalidArgument. Login
    with neither (or both) of username/email is a caller error: InvalidArgument.
  - An Expired refresh token (and an Expired access token presented to
    logout) deletes the owning session as a best-effort cleanup. A failed
    cleanup is logged and never replaces the Unauthenticated response.
  - Malformed and WrongKind tokens never mutate state.
  - Storage and hashing failures become Internal.

Layer rule: no imports from api/ or peer/.
"""

from __future__ import annotations

import enum
import logging

from auth.hashing import HashingError, PasswordHasher
from auth.models import AuthContext, Session, TokenPair
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import Expired, TokenCodec, TokenError, TokenKind
from core.errors import Internal, InvalidArgument, PermissionDenied, Unauthenticated
from db.errors import RecordNotFound, StorageError
from projects.models import Access, Decision, Role, decide
from projects.store import AccessStore

logger = logging.getLogger("modelgate.auth")

WRONG_CREDENTIALS = "Wrong username or password"


class GateState(str, enum.Enum):
    NO_CREDENTIALS = "NoCredentials"
    CREDENTIALS_PRESENTED = "CredentialsPresented"
    REFRESH_TOKEN_PRESENTED = "RefreshTokenPresented"
    AUTHENTICATED = "Authenticated"
    REJECTED = "Rejected"


class AuthGate:
    """Orchestrates token validation, session lookup and role checks.

    Usage:
        gate = AuthGate(users, sessions, access, hasher, codec)
        pair = gate.login("Secret1", username="alice123")
        ctx = gate.authenticate(pair.access_token)
        gate.require_role(ctx.user_id, project_id, Role.EDITOR)
    """

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        access: AccessStore,
        hasher: PasswordHasher,
        codec: TokenCodec,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.access = access
        self.hasher = hasher
        self.codec = codec

    # ------------------------------------------------------------------
    # Login / refresh / logout
    # ------------------------------------------------------------------

    def login(self, password: str, username: str | None = None, email: str | None = None) -> TokenPair:
        """Verify credentials and open a new session.

        Exactly one of username/email must be given (InvalidArgument otherwise).
        A missing user and a wrong password are indistinguishable to the caller.
        """
        state = GateState.NO_CREDENTIALS
        if (username is None) == (email is None):
            raise InvalidArgument("Provide exactly one of username or email.")
        state = _advance(state, GateState.CREDENTIALS_PRESENTED)

        try:
            user = self.users.get_by_username(username) if username is not None else self.users.get_by_email(email)
        except StorageError as exc:
            raise Internal("Could not look up user.") from exc

        try:
            if user is None:
                self.hasher.burn(password)
                matched = False
            else:
                matched = self.hasher.verify(password, user.password)
        except HashingError as exc:
            raise Internal("Could not verify password.") from exc

        if not matched:
            _advance(state, GateState.REJECTED)
            logger.info("Login rejected for %s", "username" if username is not None else "email")
            raise Unauthenticated(WRONG_CREDENTIALS)

        try:
            session = self.sessions.create(user.id)
        except StorageError as exc:
            raise Internal("Could not create session.") from exc
        _advance(state, GateState.AUTHENTICATED)
        logger.info("User %s logged in (session %s)", user.id, session.id)
        return TokenPair(access_token=session.access_token, refresh_token=session.refresh_token)

    def refresh(self, refresh_token: str | None) -> TokenPair:
        """Consume a refresh token and return a new pair for the same session.

        The consumed token stops matching any session the moment the rotation
        commits; presenting it again is Unauthenticated.
        """
        state = GateState.NO_CREDENTIALS
        if not refresh_token:
            _advance(state, GateState.REJECTED)
            raise Unauthenticated("No refresh token provided.")

        try:
            user_id = self.codec.validate(refresh_token, TokenKind.REFRESH)
        except Expired:
            _advance(state, GateState.REJECTED)
            self._discard_session(TokenKind.REFRESH, refresh_token)
            raise Unauthenticated("Refresh token has expired.") from None
        except TokenError as exc:
            _advance(state, GateState.REJECTED)
            raise Unauthenticated("Invalid refresh token.") from exc
        state = _advance(state, GateState.REFRESH_TOKEN_PRESENTED)

        try:
            session = self.sessions.rotate(refresh_token, user_id)
        except RecordNotFound:
            _advance(state, GateState.REJECTED)
            raise Unauthenticated("No session found with given refresh token.") from None
        except StorageError as exc:
            raise Internal("Could not rotate session.") from exc
        _advance(state, GateState.AUTHENTICATED)
        return TokenPair(access_token=session.access_token, refresh_token=session.refresh_token)

    def logout(self, access_token: str | None) -> Session:
        """Delete the session that owns access_token and return it."""
        if not access_token:
            raise Unauthenticated("No access token provided.")
        try:
            self.codec.validate(access_token, TokenKind.ACCESS)
        except Expired:
            self._discard_session(TokenKind.ACCESS, access_token)
            raise Unauthenticated("Access token has expired.") from None
        except TokenError as exc:
            raise Unauthenticated("Invalid access token.") from exc

        try:
            session = self.sessions.delete_by_token(TokenKind.ACCESS, access_token)
        except RecordNotFound:
            raise Unauthenticated("No session found with given access token.") from None
        except StorageError as exc:
            raise Internal("Could not delete session.") from exc
        logger.info("User %s logged out (session %s)", session.user_id, session.id)
        return session

    # ------------------------------------------------------------------
    # Per-request checks
    # ------------------------------------------------------------------

    def authenticate(self, access_token: str | None) -> AuthContext:
        """Resolve the caller behind a live access token.

        The token must verify, must not be expired, and must still be the
        current access token of a session belonging to its subject. Nothing is
        mutated here, so an expired access token can still be refreshed.
        """
        if not access_token:
            raise Unauthenticated("No access token provided.")
        try:
            user_id = self.codec.validate(access_token, TokenKind.ACCESS)
        except Expired:
            raise Unauthenticated("Access token has expired.") from None
        except TokenError as exc:
            raise Unauthenticated("Invalid access token.") from exc

        try:
            session = self.sessions.find_by_token(TokenKind.ACCESS, access_token)
        except StorageError as exc:
            raise Internal("Could not look up session.") from exc
        if session is None or session.user_id != user_id:
            raise Unauthenticated("Access token is no longer valid.")
        return AuthContext(user_id=user_id, session_id=session.id, access_token=access_token)

    def require_role(self, user_id: int, project_id: int, minimum_role: Role) -> Access:
        """Return the caller's access row, or raise PermissionDenied.

        No access row at all is a denial regardless of minimum_role.
        """
        try:
            access = self.access.get_by_user_and_project(user_id, project_id)
        except StorageError as exc:
            raise Internal("Could not check access.") from exc
        if decide(access, minimum_role) is Decision.DENIED:
            logger.info(
                "User %s denied on project %s (needs %s)", user_id, project_id, minimum_role.value
            )
            raise PermissionDenied(f"This operation requires the {minimum_role.value} role on the project.")
        return access

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _discard_session(self, kind: TokenKind, token: str) -> None:
        """Best-effort cleanup of the session holding an expired token."""
        try:
            session = self.sessions.delete_by_token(kind, token)
        except RecordNotFound:
            logger.debug("No session held the expired %s token", kind.value)
            return
        except StorageError as exc:
            logger.warning("Could not delete session of expired %s token: %s", kind.value, exc)
            return
        logger.info("Deleted session %s after its %s token expired", session.id, kind.value)


def _advance(current: GateState, new: GateState) -> GateState:
    logger.debug("Gate %s -> %s", current.value, new.value)
    return new
