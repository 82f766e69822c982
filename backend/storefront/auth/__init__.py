from storefront.auth.roles import Role, ROLE_DASHBOARDS
from storefront.auth.context import AuthUser
from storefront.auth.errors import AuthError, AuthenticationRequired, InvalidToken, PermissionDenied, TokenSigningError
from storefront.auth.guards import extract_token, authenticate, require_auth, require_admin, require_ownership, optional_auth

__all__ = [
    "Role", "ROLE_DASHBOARDS", "AuthUser",
    "AuthError", "AuthenticationRequired", "InvalidToken", "PermissionDenied", "TokenSigningError",
    "extract_token", "authenticate", "require_auth", "require_admin", "require_ownership", "optional_auth",
]
