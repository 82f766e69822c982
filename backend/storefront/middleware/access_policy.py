"""
Route access policy.

A static table of path classes checked, in order, before any handler runs:

    1. public pages         exact or sub-path match, always allowed
    2. public API routes    sub-path match, always allowed
    3. protected pages      token required; failures redirect to /login
    4. protected API        /api/admin; failures are JSON 401/403

A protected request moves through

    Unauthenticated -> token present -> Verified -> role allowed -> Allowed

and stops at the first failed step with the response for that step. Paths
outside the table pass through; their handlers apply their own guards.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse

from storefront.auth.context import AuthUser
from storefront.auth.cookies import clear_session_cookies
from storefront.auth.guards import extract_token
from storefront.auth.jwt import verify_token
from storefront.auth.roles import Role, ROLE_DASHBOARDS
from storefront.middleware.metrics import access_policy_decisions_total

logger = logging.getLogger(__name__)

LOGIN_PAGE = "/login"

PUBLIC_PAGE_ROUTES = (
    "/",
    "/login",
    "/register",
    "/about",
    "/products",
    "/forgot-password",
    "/reset-password",
)

PUBLIC_API_ROUTES = (
    "/api/login",
    "/api/register",
    "/api/auth/forgot-password",
    "/api/auth/reset-password",
    "/api/forgot-password",
    "/api/products",  # catalogue browsing
    "/api/categories",
    "/api/auth/refresh",
    "/api/auth/logout",
    "/api/health",
    "/metrics",
)

PROTECTED_PAGE_ROUTES = (
    "/user-dashboard",
    "/profile",
    "/cart",
    "/checkout",
    "/myorders",
    "/admin",
)

ADMIN_PAGE_PREFIX = "/admin"
USER_DASHBOARD_PREFIX = "/user-dashboard"
PROTECTED_API_PREFIX = "/api/admin"

# Static assets never reach the gate.
STATIC_PATHS = re.compile(r"^/(?:_next/static|_next/image|favicon\.ico|images|lottie)")


class RouteClass(str, Enum):
    PUBLIC_PAGE = "public_page"
    PUBLIC_API = "public_api"
    PROTECTED_PAGE = "protected_page"
    PROTECTED_API = "protected_api"
    UNCLASSIFIED = "unclassified"


class Action(str, Enum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    REJECT = "reject"


@dataclass(frozen=True)
class AccessDecision:
    route_class: RouteClass
    action: Action
    location: str | None = None
    status_code: int | None = None
    message: str | None = None
    clear_cookies: bool = False


def _under(path: str, route: str) -> bool:
    if route == "/":
        return path == "/"
    return path == route or path.startswith(route + "/")


def classify_path(path: str) -> RouteClass:
    if any(_under(path, route) for route in PUBLIC_PAGE_ROUTES):
        return RouteClass.PUBLIC_PAGE
    if any(_under(path, route) for route in PUBLIC_API_ROUTES):
        return RouteClass.PUBLIC_API
    if any(_under(path, route) for route in PROTECTED_PAGE_ROUTES):
        return RouteClass.PROTECTED_PAGE
    if _under(path, PROTECTED_API_PREFIX):
        return RouteClass.PROTECTED_API
    return RouteClass.UNCLASSIFIED


def _login_redirect(path: str, clear_cookies: bool = False) -> AccessDecision:
    return AccessDecision(
        RouteClass.PROTECTED_PAGE,
        Action.REDIRECT,
        location=f"{LOGIN_PAGE}?{urlencode({'redirect': path})}",
        clear_cookies=clear_cookies,
    )


def _resolve(token: str | None) -> AuthUser | None:
    claims = verify_token(token) if token else None
    return AuthUser.from_claims(claims) if claims else None


def _page_decision(path: str, token: str | None) -> AccessDecision:
    if token is None:
        return _login_redirect(path)

    user = _resolve(token)
    if user is None:
        # Stale cookies would bounce the browser straight back here.
        return _login_redirect(path, clear_cookies=True)

    if _under(path, ADMIN_PAGE_PREFIX) and user.role is not Role.ADMIN:
        return AccessDecision(
            RouteClass.PROTECTED_PAGE, Action.REDIRECT, location=ROLE_DASHBOARDS[Role.USER]
        )
    if _under(path, USER_DASHBOARD_PREFIX) and user.role is Role.ADMIN:
        return AccessDecision(
            RouteClass.PROTECTED_PAGE, Action.REDIRECT, location=ROLE_DASHBOARDS[Role.ADMIN]
        )
    return AccessDecision(RouteClass.PROTECTED_PAGE, Action.ALLOW)


def _api_decision(token: str | None) -> AccessDecision:
    if token is None:
        return AccessDecision(
            RouteClass.PROTECTED_API, Action.REJECT, status_code=401, message="Authentication required"
        )

    user = _resolve(token)
    if user is None:
        return AccessDecision(
            RouteClass.PROTECTED_API,
            Action.REJECT,
            status_code=401,
            message="Invalid or expired token",
            clear_cookies=True,
        )
    if user.role is not Role.ADMIN:
        return AccessDecision(
            RouteClass.PROTECTED_API, Action.REJECT, status_code=403, message="Admin access required"
        )
    return AccessDecision(RouteClass.PROTECTED_API, Action.ALLOW)


def evaluate_access(path: str, token: str | None) -> AccessDecision:
    """Decide what happens to a request for ``path`` carrying ``token`` (or none)."""
    route_class = classify_path(path)
    if route_class is RouteClass.PROTECTED_PAGE:
        return _page_decision(path, token)
    if route_class is RouteClass.PROTECTED_API:
        return _api_decision(token)
    return AccessDecision(route_class, Action.ALLOW)


class AccessPolicyMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if STATIC_PATHS.match(path):
            return await call_next(request)

        decision = evaluate_access(path, extract_token(request))
        access_policy_decisions_total.labels(
            route_class=decision.route_class.value,
            action=decision.action.value,
        ).inc()

        if decision.action is Action.ALLOW:
            return await call_next(request)

        if decision.action is Action.REDIRECT:
            logger.info("Redirecting %s to %s", path, decision.location)
            response = RedirectResponse(decision.location, status_code=307)
        else:
            logger.info("Rejected %s with %s", path, decision.status_code)
            response = JSONResponse(
                status_code=decision.status_code,
                content={"success": False, "message": decision.message},
            )

        if decision.clear_cookies:
            clear_session_cookies(response)
        return response
