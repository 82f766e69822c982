"""
Role definitions for storefront accounts.

Each role lives in its own account table:

    USER  -> users   (shoppers, self-registered)
    ADMIN -> admins  (store staff, provisioned out of band)

Ids are only unique within a table, so an identity is always the pair
(role, id). Each role also owns one landing dashboard, and the two
dashboards are mutually exclusive.
"""

from enum import Enum


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


ROLE_DASHBOARDS: dict[Role, str] = {
    Role.USER: "/user-dashboard",
    Role.ADMIN: "/admin/admin-dashboard",
}

# Signed into refresh tokens as `acct` so a refresh only ever reads the
# table the session was opened against.
ACCOUNT_TABLES: dict[Role, str] = {
    Role.USER: "users",
    Role.ADMIN: "admins",
}


def role_for_table(table) -> Role | None:
    for role, name in ACCOUNT_TABLES.items():
        if name == table:
            return role
    return None


def parse_role(value) -> Role | None:
    """Return the Role for a claim or request value, or None if it is not one."""
    try:
        return Role(value)
    except ValueError:
        return None
