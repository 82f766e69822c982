"""
AuthUser: the trusted identity a handler receives after authentication.

It is built only from a verified access token. The canonical id claim is
``sub``. Both token issuers also sign an ``id`` claim with the same value
for older clients; a token where the two disagree is rejected rather than
guessed at.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from storefront.auth.roles import Role, ROLE_DASHBOARDS, parse_role


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def claims_subject(claims: Mapping[str, Any]) -> int | None:
    """The account id a token speaks for, or None if it is missing or ambiguous."""
    subject = _as_int(claims.get("sub"))
    if subject is None:
        return None
    if "id" in claims and _as_int(claims["id"]) != subject:
        return None
    return subject


@dataclass(frozen=True)
class AuthUser:
    id: int
    email: str
    role: Role
    name: str | None = None

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> AuthUser | None:
        """Return the identity in an access token's claims, or None if they are incomplete."""
        user_id = claims_subject(claims)
        if user_id is None:
            return None
        role = parse_role(claims.get("role"))
        if role is None:
            return None
        return cls(
            id=user_id,
            email=claims.get("email", ""),
            role=role,
            name=claims.get("name"),
        )

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def dashboard(self) -> str:
        return ROLE_DASHBOARDS[self.role]

    @property
    def actor(self) -> str:
        """Identity string for logging."""
        return f"{self.role.value}:{self.id}"

    def to_dict(self) -> dict:
        data = {"id": self.id, "email": self.email, "role": self.role.value}
        if self.name:
            data["name"] = self.name
        return data
