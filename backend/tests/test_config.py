"""Tests for startup configuration checks."""

import pytest
from pydantic import ValidationError

from storefront.config import LEGACY_FALLBACK_SECRET, Settings

GOOD_SECRET = "x" * 48


def test_loads_with_strong_secret():
    settings = Settings(_env_file=None, jwt_secret=GOOD_SECRET)
    assert settings.jwt_secret == GOOD_SECRET
    assert not settings.is_production


def test_missing_secret_fails(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


@pytest.mark.parametrize("secret", ["", "   ", LEGACY_FALLBACK_SECRET, "short-secret"])
def test_weak_secret_fails(secret):
    with pytest.raises(ValidationError, match="JWT_SECRET"):
        Settings(_env_file=None, jwt_secret=secret)


def test_production_rejects_default_database_password():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, jwt_secret=GOOD_SECRET, environment="production",
                 database_url="postgresql+asyncpg://storefront:storefront_dev_password@db/storefront")


def test_production_flag():
    settings = Settings(_env_file=None, jwt_secret=GOOD_SECRET, environment="production",
                        database_url="postgresql+asyncpg://storefront:real@db/storefront")
    assert settings.is_production
