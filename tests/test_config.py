"""Unit tests for core/config.py -- signing key policy and defaults."""

from __future__ import annotations

import pytest

from core.config import Settings


def test_production_requires_secret_key():
    with pytest.raises(ValueError, match="SECRET_KEY is required"):
        Settings(_env_file=None, debug=False, secret_key="")


def test_short_secret_key_rejected():
    with pytest.raises(ValueError, match="at least 32 characters"):
        Settings(_env_file=None, debug=False, secret_key="too-short")


def test_debug_generates_secret_key():
    settings = Settings(_env_file=None, debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_explicit_secret_key_kept():
    key = "s" * 40
    assert Settings(_env_file=None, debug=False, secret_key=key).secret_key == key


def test_session_backend_is_validated():
    with pytest.raises(ValueError):
        Settings(_env_file=None, debug=True, session_backend="redis")


def test_session_ttl_must_be_positive():
    with pytest.raises(ValueError):
        Settings(_env_file=None, debug=True, session_ttl_seconds=0)
