"""
Request authenticator.

Resolves the bearer token on a request to an AuthUser and gates handlers
on it. Each wrapper takes the request and an async ``handler(request, user)``
and either returns the handler's response or a JSON 401/403:

    async def handler(request, user):
        return JSONResponse({"id": user.id})

    return await require_admin(request, handler)

Nothing here touches stored state.
"""

import logging
import re
from typing import Awaitable, Callable

from starlette.requests import Request
from starlette.responses import Response

from storefront.auth.context import AuthUser
from storefront.auth.cookies import ACCESS_COOKIE, parse_cookie_header
from storefront.auth.errors import AuthError, AuthenticationRequired, InvalidToken, PermissionDenied
from storefront.auth.jwt import verify_token

logger = logging.getLogger(__name__)

Handler = Callable[[Request, AuthUser | None], Awaitable[Response]]

ADMIN_REQUIRED = "Access denied. Admin privileges required."
OWNER_REQUIRED = "Access denied. You can only access your own resources."

CANONICAL_ID = re.compile(r"[0-9]+")


def extract_token(request: Request) -> str | None:
    """Bearer header first (API clients), then the accessToken cookie (browsers)."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token

    cookies = parse_cookie_header(request.headers.get("Cookie"))
    return cookies.get(ACCESS_COOKIE) or None


def authenticate(request: Request) -> AuthUser:
    """Return the caller's identity or raise AuthenticationRequired / InvalidToken."""
    token = extract_token(request)
    if token is None:
        raise AuthenticationRequired()

    claims = verify_token(token)
    if claims is None:
        raise InvalidToken()

    user = AuthUser.from_claims(claims)
    if user is None:
        # Signed by us but not an access token (e.g. a refresh token).
        raise InvalidToken()
    return user


def check_admin(user: AuthUser) -> None:
    if not user.is_admin:
        raise PermissionDenied(ADMIN_REQUIRED)


def check_owner(user: AuthUser, resource_user_id) -> None:
    if user.is_admin:
        return
    # ASCII digits only: int() would also take "4_2", " 42" or fullwidth digits.
    if resource_user_id is None or not CANONICAL_ID.fullmatch(str(resource_user_id)):
        raise PermissionDenied(OWNER_REQUIRED)
    if user.id != int(resource_user_id):
        raise PermissionDenied(OWNER_REQUIRED)


async def require_auth(request: Request, handler: Handler) -> Response:
    try:
        user = authenticate(request)
    except AuthError as exc:
        return exc.to_response()
    return await handler(request, user)


async def require_admin(request: Request, handler: Handler) -> Response:
    async def _admin_only(req: Request, user: AuthUser) -> Response:
        try:
            check_admin(user)
        except PermissionDenied as exc:
            logger.info("Admin access denied for %s on %s", user.actor, req.url.path)
            return exc.to_response()
        return await handler(req, user)

    return await require_auth(request, _admin_only)


async def require_ownership(request: Request, resource_user_id, handler: Handler) -> Response:
    async def _owner_only(req: Request, user: AuthUser) -> Response:
        try:
            check_owner(user, resource_user_id)
        except PermissionDenied as exc:
            return exc.to_response()
        return await handler(req, user)

    return await require_auth(request, _owner_only)


async def optional_auth(request: Request, handler: Handler) -> Response:
    """Like require_auth, but guests and bad tokens reach the handler with user=None."""
    try:
        user = authenticate(request)
    except AuthError:
        user = None
    return await handler(request, user)
