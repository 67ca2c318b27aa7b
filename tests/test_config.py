"""
tests/test_config.py -- Settings validation.

Covers:
  - production mode refuses to start without signing secrets
  - debug mode generates distinct secrets
  - short, identical and non-positive-lifetime settings are rejected
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings
from tests.conftest import ACCESS_SECRET, REFRESH_SECRET, make_settings


def test_production_requires_secrets() -> None:
    with pytest.raises(ValidationError, match="ACCESS_TOKEN_SECRET is required"):
        Settings(debug=False, access_token_secret="", refresh_token_secret=REFRESH_SECRET)


def test_debug_generates_distinct_secrets() -> None:
    s = Settings(debug=True, access_token_secret="", refresh_token_secret="")
    assert len(s.access_token_secret) >= 32
    assert s.access_token_secret != s.refresh_token_secret


def test_short_secret_rejected() -> None:
    with pytest.raises(ValidationError, match="at least 32"):
        make_settings(refresh_token_secret="short")


def test_identical_secrets_rejected() -> None:
    with pytest.raises(ValidationError, match="must differ"):
        make_settings(refresh_token_secret=ACCESS_SECRET)


@pytest.mark.parametrize("field", ["access_token_ttl_seconds", "refresh_token_ttl_seconds"])
def test_non_positive_ttl_rejected(field: str) -> None:
    with pytest.raises(ValidationError, match="positive"):
        make_settings(**{field: 0})


def test_defaults() -> None:
    s = make_settings()
    assert s.access_token_ttl_seconds == 20 * 60
    assert s.refresh_token_ttl_seconds == 90 * 24 * 60 * 60
    assert s.login_rate_limit == "10/minute"
