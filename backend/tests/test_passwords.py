"""Tests for the credential verifier."""

import pytest

from storefront.auth.passwords import (
    PasswordScheme,
    classify_stored_password,
    hash_password,
    needs_migration,
    verify_password,
)


@pytest.fixture(scope="module")
def secret_hash() -> str:
    return hash_password("secret")


class TestBcrypt:
    def test_accepts_right_password(self, secret_hash):
        assert verify_password("secret", secret_hash)

    def test_rejects_wrong_password(self, secret_hash):
        assert not verify_password("wrong", secret_hash)

    def test_uses_cost_factor_ten(self, secret_hash):
        assert secret_hash.startswith("$2b$10$")
        assert classify_stored_password(secret_hash) is PasswordScheme.BCRYPT
        assert not needs_migration(secret_hash)

    def test_hash_is_salted(self, secret_hash):
        assert hash_password("secret") != secret_hash

    def test_plaintext_of_hash_does_not_verify(self, secret_hash):
        # Presenting the stored hash itself must not pass the bcrypt branch.
        assert not verify_password(secret_hash, secret_hash)

    def test_corrupt_hash_is_a_mismatch(self):
        assert not verify_password("secret", "$2b$10$not-a-real-hash")


class TestPlaintextLegacy:
    def test_exact_match_only(self):
        assert classify_stored_password("secret") is PasswordScheme.PLAINTEXT_LEGACY
        assert verify_password("secret", "secret")
        assert not verify_password("Secret", "secret")
        assert not verify_password("secret ", "secret")

    def test_flagged_for_migration(self):
        assert needs_migration("secret")

    @pytest.mark.parametrize("stored", ["", None])
    def test_empty_stored_value_never_verifies(self, stored):
        assert not verify_password("", stored)
