"""Unit tests for auth/tokens.py -- TokenCodec issue/validate.

Covers:
- issue() then validate() returns the subject for both kinds
- validate() with the wrong kind never succeeds (WrongKind, even when expired)
- expired tokens raise Expired, distinct from Malformed
- garbage, tampered and foreign-secret tokens raise Malformed
- two tokens issued for the same user in the same second differ
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.tokens import Expired, Malformed, TokenCodec, TokenKind, WrongKind

_LONG_AGO = datetime.now(timezone.utc) - timedelta(days=365)


class TestIssueAndValidate:
    def test_access_round_trip(self, codec: TokenCodec) -> None:
        token = codec.issue(TokenKind.ACCESS, 42)
        assert codec.validate(token, TokenKind.ACCESS) == 42

    def test_refresh_round_trip(self, codec: TokenCodec) -> None:
        token = codec.issue(TokenKind.REFRESH, 7)
        assert codec.validate(token, TokenKind.REFRESH) == 7

    def test_claims_carry_kind_and_expiry(self, codec: TokenCodec) -> None:
        """The kind tag and an exp claim derived from the kind's TTL are present."""
        now = datetime.now(timezone.utc).replace(microsecond=0)
        token = codec.issue(TokenKind.ACCESS, 1, now=now)
        claims = jwt.get_unverified_claims(token)
        assert claims["typ"] == "access"
        assert claims["sub"] == "1"
        assert claims["exp"] - claims["iat"] == 1200

    def test_same_second_tokens_differ(self, codec: TokenCodec) -> None:
        now = datetime.now(timezone.utc)
        assert codec.issue(TokenKind.ACCESS, 1, now=now) != codec.issue(TokenKind.ACCESS, 1, now=now)


class TestWrongKind:
    """A token is never accepted as the other kind, whatever its state."""

    def test_refresh_token_rejected_as_access(self, codec: TokenCodec) -> None:
        token = codec.issue(TokenKind.REFRESH, 1)
        with pytest.raises(WrongKind):
            codec.validate(token, TokenKind.ACCESS)

    def test_access_token_rejected_as_refresh(self, codec: TokenCodec) -> None:
        token = codec.issue(TokenKind.ACCESS, 1)
        with pytest.raises(WrongKind):
            codec.validate(token, TokenKind.REFRESH)

    def test_expired_token_of_wrong_kind_is_wrong_kind(self, codec: TokenCodec) -> None:
        """Expiry must not mask a kind mismatch: cleanup runs only for the right kind."""
        token = codec.issue(TokenKind.ACCESS, 1, now=_LONG_AGO)
        with pytest.raises(WrongKind):
            codec.validate(token, TokenKind.REFRESH)

    def test_right_secret_wrong_tag_is_wrong_kind(self, codec: TokenCodec, settings) -> None:
        """A token signed with the access secret but tagged refresh is still rejected."""
        now = datetime.now(timezone.utc)
        forged = jwt.encode(
            {"sub": "1", "typ": "refresh", "iat": now, "exp": now + timedelta(minutes=5)},
            settings.access_token_secret,
            algorithm="HS512",
        )
        with pytest.raises(WrongKind):
            codec.validate(forged, TokenKind.ACCESS)


class TestExpired:
    def test_expired_access_token(self, codec: TokenCodec) -> None:
        token = codec.issue(TokenKind.ACCESS, 1, now=_LONG_AGO)
        with pytest.raises(Expired):
            codec.validate(token, TokenKind.ACCESS)

    def test_expired_refresh_token(self, codec: TokenCodec) -> None:
        token = codec.issue(TokenKind.REFRESH, 1, now=_LONG_AGO)
        with pytest.raises(Expired):
            codec.validate(token, TokenKind.REFRESH)

    def test_expired_is_not_malformed(self, codec: TokenCodec) -> None:
        token = codec.issue(TokenKind.ACCESS, 1, now=_LONG_AGO)
        with pytest.raises(Exception) as info:
            codec.validate(token, TokenKind.ACCESS)
        assert not isinstance(info.value, Malformed)


class TestMalformed:
    @pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c"])
    def test_garbage(self, codec: TokenCodec, token: str) -> None:
        with pytest.raises(Malformed):
            codec.validate(token, TokenKind.ACCESS)

    def test_tampered_signature(self, codec: TokenCodec) -> None:
        token = codec.issue(TokenKind.ACCESS, 1)
        head, payload, sig = token.split(".")
        tampered = ".".join([head, payload, ("A" if sig[0] != "A" else "B") + sig[1:]])
        with pytest.raises(Malformed):
            codec.validate(tampered, TokenKind.ACCESS)

    def test_foreign_secret(self, codec: TokenCodec) -> None:
        now = datetime.now(timezone.utc)
        foreign = jwt.encode(
            {"sub": "1", "typ": "access", "iat": now, "exp": now + timedelta(minutes=5)},
            "x" * 48,
            algorithm="HS512",
        )
        with pytest.raises(Malformed):
            codec.validate(foreign, TokenKind.ACCESS)

    def test_non_integer_subject(self, codec: TokenCodec, settings) -> None:
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "alice", "typ": "access", "iat": now, "exp": now + timedelta(minutes=5)},
            settings.access_token_secret,
            algorithm="HS512",
        )
        with pytest.raises(Malformed):
            codec.validate(token, TokenKind.ACCESS)
