"""JWT token creation and validation.

Sessions are stateless bearer tokens: nothing is stored server side, so a
token stays valid until its ``exp`` even after logout. Logout only deletes
the client's cookies.
"""

import logging
import time
from typing import Any, Mapping

from jose import jwt
from jose.exceptions import JOSEError

from storefront.auth.errors import TokenSigningError
from storefront.auth.roles import ACCOUNT_TABLES, parse_role
from storefront.config import settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

ACCESS_TOKEN_TTL = 3600  # 1 hour
REFRESH_TOKEN_TTL = 7 * 86400  # 7 days


def _sign(payload: dict, ttl: int, now: float | None) -> str:
    issued_at = int(time.time() if now is None else now)
    payload = {
        **payload,
        "sub": str(payload["id"]),
        "iat": issued_at,
        "exp": issued_at + ttl,
    }
    try:
        return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)
    except JOSEError as exc:
        logger.error("Token signing failed: %s", exc)
        raise TokenSigningError("Token generation failed") from exc


def issue_access_token(claims: Mapping[str, Any], *, now: float | None = None) -> str:
    """Create a short-lived access token carrying the full identity claims."""
    payload = {
        "id": claims["id"],
        "email": claims["email"],
        "role": claims["role"],
    }
    if claims.get("name"):
        payload["name"] = claims["name"]
    return _sign(payload, ACCESS_TOKEN_TTL, now)


def issue_refresh_token(claims: Mapping[str, Any], *, now: float | None = None) -> str:
    """Create a long-lived refresh token.

    Only ``id``, ``email`` and ``acct`` (the account table the session was
    opened against) are signed; never a role. The account is looked up again
    in that table on every refresh, so a removed account takes effect within
    one access-token lifetime.
    """
    payload = {"id": claims["id"], "email": claims["email"]}
    role = parse_role(claims.get("role"))
    if role is not None:
        payload["acct"] = ACCOUNT_TABLES[role]
    return _sign(payload, REFRESH_TOKEN_TTL, now)


def verify_token(token: str) -> dict | None:
    """Return the decoded claims, or None if the token is expired, malformed or forged."""
    if not token:
        return None
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    except JOSEError as exc:
        logger.debug("JWT verification failed: %s", exc)
        return None
