"""Tests for token issuance and verification."""

import time

import pytest
from jose import jwt as jose_jwt
from jose.exceptions import JWSError

from storefront.auth import jwt as token_service
from storefront.auth.errors import TokenSigningError
from storefront.auth.jwt import (
    ACCESS_TOKEN_TTL,
    REFRESH_TOKEN_TTL,
    issue_access_token,
    issue_refresh_token,
    verify_token,
)

CLAIMS = {"id": 42, "email": "asha@example.com", "role": "user", "name": "Asha"}


class TestAccessToken:
    def test_round_trip(self):
        claims = verify_token(issue_access_token(CLAIMS))
        assert claims["id"] == 42
        assert claims["email"] == "asha@example.com"
        assert claims["role"] == "user"
        assert claims["name"] == "Asha"

    def test_subject_and_lifetime(self):
        now = int(time.time())
        claims = verify_token(issue_access_token(CLAIMS, now=now))
        assert claims["sub"] == "42"
        assert claims["iat"] == now
        assert claims["exp"] == now + ACCESS_TOKEN_TTL == now + 3600

    def test_name_is_optional(self):
        claims = verify_token(issue_access_token({"id": 1, "email": "a@b.c", "role": "admin"}))
        assert "name" not in claims
        assert claims["role"] == "admin"

    def test_extra_claims_are_not_signed(self):
        claims = verify_token(issue_access_token({**CLAIMS, "is_superuser": True}))
        assert "is_superuser" not in claims


class TestRefreshToken:
    def test_never_carries_role(self):
        claims = verify_token(issue_refresh_token({"id": 7, "email": "x@y.z", "role": "admin"}))
        assert "role" not in claims
        assert "name" not in claims
        assert claims["id"] == 7
        assert claims["email"] == "x@y.z"
        assert claims["sub"] == "7"

    def test_tags_the_account_table(self):
        assert verify_token(issue_refresh_token({**CLAIMS, "role": "admin"}))["acct"] == "admins"
        assert verify_token(issue_refresh_token(CLAIMS))["acct"] == "users"
        assert "acct" not in verify_token(issue_refresh_token({"id": 7, "email": "x@y.z"}))

    def test_lives_seven_days(self):
        now = int(time.time())
        claims = verify_token(issue_refresh_token(CLAIMS, now=now))
        assert claims["exp"] - claims["iat"] == REFRESH_TOKEN_TTL == 604800
        assert REFRESH_TOKEN_TTL > ACCESS_TOKEN_TTL


class TestVerify:
    def test_expired_token_is_rejected(self):
        token = issue_access_token(CLAIMS, now=time.time() - ACCESS_TOKEN_TTL - 60)
        assert verify_token(token) is None

    def test_expired_refresh_token_is_rejected(self):
        token = issue_refresh_token(CLAIMS, now=time.time() - REFRESH_TOKEN_TTL - 1)
        assert verify_token(token) is None

    def test_foreign_secret_is_rejected(self):
        now = int(time.time())
        forged = jose_jwt.encode(
            {**CLAIMS, "sub": "42", "iat": now, "exp": now + 3600},
            "some-other-secret-that-is-long-enough-000",
            algorithm="HS256",
        )
        assert verify_token(forged) is None

    def test_unsigned_token_is_rejected(self):
        token = issue_access_token(CLAIMS)
        header, payload, _ = token.split(".")
        assert verify_token(f"{header}.{payload}.") is None

    def test_tampered_payload_is_rejected(self):
        admin = issue_access_token({**CLAIMS, "role": "admin"})
        user = issue_access_token(CLAIMS)
        # Splice the admin payload onto the user token's signature.
        forged = ".".join([user.split(".")[0], admin.split(".")[1], user.split(".")[2]])
        assert verify_token(forged) is None

    @pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c", "Bearer x"])
    def test_malformed_input_returns_none(self, garbage):
        assert verify_token(garbage) is None


def test_signing_failure_raises(monkeypatch):
    def _broken_encode(*args, **kwargs):
        raise JWSError("no usable key")

    monkeypatch.setattr(token_service.jwt, "encode", _broken_encode)
    with pytest.raises(TokenSigningError):
        issue_access_token(CLAIMS)
