"""Password hashing utilities using passlib + bcrypt.

Stored passwords come in two schemes. New and updated rows hold a bcrypt
hash. Rows imported from the first storefront still hold the raw password:
these are compared by exact match and reported as needing migration. They
are insecure and are not rewritten behind the user's back.
"""

import hmac
from enum import Enum

from passlib.context import CryptContext

BCRYPT_ROUNDS = 10
BCRYPT_MARKERS = ("$2a$", "$2b$", "$2y$")

_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


class PasswordScheme(str, Enum):
    BCRYPT = "bcrypt"
    PLAINTEXT_LEGACY = "plaintext_legacy"


def classify_stored_password(stored: str) -> PasswordScheme:
    if stored.startswith(BCRYPT_MARKERS):
        return PasswordScheme.BCRYPT
    return PasswordScheme.PLAINTEXT_LEGACY


def needs_migration(stored: str) -> bool:
    return classify_stored_password(stored) is PasswordScheme.PLAINTEXT_LEGACY


def hash_password(plain: str) -> str:
    return _ctx.hash(plain)


def verify_password(plain: str, stored: str | None) -> bool:
    if not stored or plain is None:
        return False
    if classify_stored_password(stored) is PasswordScheme.BCRYPT:
        try:
            return _ctx.verify(plain, stored)
        except ValueError:
            # Corrupt hash: treat as a mismatch rather than a server error.
            return False
    return hmac.compare_digest(plain.encode("utf-8"), stored.encode("utf-8"))
