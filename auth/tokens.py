"""
auth/tokens.py -- Signed bearer tokens (issue and validate).

Security design decisions:
  JWT: python-jose with HS512. Each token carries sub (user id), typ
       ("access" | "refresh"), iat, exp and a random jti. The jti makes two
       tokens issued for the same user in the same second distinct, which the
       session table's UNIQUE token columns rely on.

  Distinct secrets per kind: access tokens are signed with
       ACCESS_TOKEN_SECRET and refresh tokens with REFRESH_TOKEN_SECRET.
       A refresh token presented where an access token is expected fails
       verification under the access secret; the codec then checks the other
       secret only to classify the failure as WrongKind instead of Malformed.

  Failure classification: validate() raises exactly one of
       Malformed  -- cannot parse, or the signature verifies under neither secret
       WrongKind  -- signature is valid, but for the other kind
       Expired    -- signature and kind are valid, clock is past exp
       The distinction matters to callers: an expired token may trigger session
       cleanup, a malformed or wrong-kind token must never mutate state.

  Secrets come from the Settings object passed to the constructor. A missing
       secret is a startup misconfiguration (Settings refuses to build), never a
       request-time error.

Layer rule: no imports from api/, projects/, or peer/.
"""

from __future__ import annotations

import enum
import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from core.config import Settings

logger = logging.getLogger("modelgate.auth")

_ALGORITHM = "HS512"


class TokenKind(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TokenError(Exception):
    """Base class for token validation failures."""


class Malformed(TokenError):
    """The token cannot be parsed or its signature does not verify."""


class WrongKind(TokenError):
    """The signature is valid, but for a different token kind."""


class Expired(TokenError):
    """The token is valid in every respect except that it has expired."""


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


class TokenCodec:
    """Issue and validate access/refresh tokens.

    Usage:
        codec = TokenCodec(settings)
        token = codec.issue(TokenKind.ACCESS, user_id)
        user_id = codec.validate(token, TokenKind.ACCESS)   # raises TokenError
    """

    def __init__(self, settings: Settings) -> None:
        self._secrets = {
            TokenKind.ACCESS: settings.access_token_secret,
            TokenKind.REFRESH: settings.refresh_token_secret,
        }
        self._ttl = {
            TokenKind.ACCESS: timedelta(seconds=settings.access_token_ttl_seconds),
            TokenKind.REFRESH: timedelta(seconds=settings.refresh_token_ttl_seconds),
        }
        for kind, secret in self._secrets.items():
            if not secret:
                raise ValueError(f"No signing secret configured for {kind.value} tokens.")

    def issue(self, kind: TokenKind, subject: int, now: datetime | None = None) -> str:
        """Encode and sign a token of the given kind for subject (a user id).

        now is overridable so tests can mint already-expired tokens.
        """
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(subject),
            "typ": kind.value,
            "iat": issued_at,
            "exp": issued_at + self._ttl[kind],
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, self._secrets[kind], algorithm=_ALGORITHM)

    def validate(self, token: str, expected_kind: TokenKind) -> int:
        """Verify signature, kind and expiry; return the subject user id.

        Raises Malformed, WrongKind or Expired (see module docstring).
        """
        try:
            payload = jwt.decode(
                token,
                self._secrets[expected_kind],
                algorithms=[_ALGORITHM],
                options={"verify_iat": False},
            )
        except ExpiredSignatureError:
            # jose verifies the signature before claims, so the signature is
            # good here; the kind tag still has to match before it counts as Expired.
            claims = jwt.get_unverified_claims(token)
            if claims.get("typ") != expected_kind.value:
                raise WrongKind(f"Expected a {expected_kind.value} token.") from None
            raise Expired("Token is expired.") from None
        except JWTError as exc:
            if self._verifies_as_other_kind(token, expected_kind):
                raise WrongKind(f"Expected a {expected_kind.value} token.") from None
            raise Malformed("Token is invalid.") from exc

        if payload.get("typ") != expected_kind.value:
            raise WrongKind(f"Expected a {expected_kind.value} token.")
        try:
            return int(payload["sub"])
        except (KeyError, TypeError, ValueError):
            raise Malformed("Token has no valid subject.") from None

    def _verifies_as_other_kind(self, token: str, expected_kind: TokenKind) -> bool:
        other = TokenKind.REFRESH if expected_kind is TokenKind.ACCESS else TokenKind.ACCESS
        try:
            jwt.decode(
                token,
                self._secrets[other],
                algorithms=[_ALGORITHM],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError:
            return False
        return True
