"""Unit tests for core/config.py -- Settings loading and SECRET_KEY policy.

Covers:
- production mode without SECRET_KEY refuses to start
- DEBUG mode generates a random key
- keys shorter than 32 characters are rejected
- defaults match the documented lifetimes and cost factor
- Settings is immutable after load
"""

import pytest
from pydantic import ValidationError

from core.config import Settings

VALID_KEY = "k" * 32


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Run each test without the session's DEBUG flag or a stray .env file."""
    monkeypatch.chdir(tmp_path)
    for name in ("DEBUG", "SECRET_KEY", "DATABASE_URL", "BCRYPT_ROUNDS"):
        monkeypatch.delenv(name, raising=False)


def test_missing_secret_in_production_raises():
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings()


def test_debug_mode_generates_secret(monkeypatch):
    monkeypatch.setenv("DEBUG", "true")
    first = Settings()
    second = Settings()
    assert len(first.secret_key) == 64
    assert first.secret_key != second.secret_key


def test_short_secret_rejected(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "too-short")
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings()


def test_short_secret_rejected_even_in_debug(monkeypatch):
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("SECRET_KEY", "too-short")
    with pytest.raises(ValidationError):
        Settings()


def test_defaults(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", VALID_KEY)
    settings = Settings()
    assert settings.secret_key == VALID_KEY
    assert settings.token_expire_seconds == 24 * 3600
    assert settings.reset_token_expire_seconds == 3600
    assert settings.bcrypt_rounds == 12
    assert settings.smtp_configured is False


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", VALID_KEY)
    monkeypatch.setenv("DATABASE_URL", "sqlite:///other.db")
    monkeypatch.setenv("BCRYPT_ROUNDS", "10")
    settings = Settings()
    assert settings.database_url == "sqlite:///other.db"
    assert settings.bcrypt_rounds == 10


def test_bcrypt_rounds_bounds(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", VALID_KEY)
    monkeypatch.setenv("BCRYPT_ROUNDS", "3")
    with pytest.raises(ValidationError):
        Settings()


def test_smtp_configured_needs_user_and_password():
    settings = Settings(secret_key=VALID_KEY, smtp_user="u", smtp_password="p")
    assert settings.smtp_configured is True
    assert Settings(secret_key=VALID_KEY, smtp_user="u").smtp_configured is False


def test_settings_are_frozen():
    settings = Settings(secret_key=VALID_KEY)
    with pytest.raises(ValidationError):
        settings.secret_key = "x" * 40
