"""
Session cookie codec.

Renders the exact Set-Cookie directives for the access/refresh pair:

    accessToken=<jwt>; Max-Age=3600; Path=/; HttpOnly; SameSite=Strict[; Secure]

``Secure`` is only emitted in production so the storefront keeps working
over plain HTTP in local development.
"""

from starlette.requests import cookie_parser
from starlette.responses import Response

from storefront.auth.jwt import ACCESS_TOKEN_TTL, REFRESH_TOKEN_TTL
from storefront.config import settings

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def encode_session_cookie(name: str, token: str, max_age: int, *, secure: bool | None = None) -> str:
    if secure is None:
        secure = settings.is_production
    parts = [
        f"{name}={token}",
        f"Max-Age={int(max_age)}",
        "Path=/",
        "HttpOnly",
        "SameSite=Strict",
    ]
    if secure:
        parts.append("Secure")
    return "; ".join(parts)


def expire_cookie(name: str) -> str:
    return f"{name}=; Max-Age=0; Path=/; HttpOnly; SameSite=Strict"


def parse_cookie_header(raw: str | None) -> dict[str, str]:
    if not raw:
        return {}
    return cookie_parser(raw)


def set_session_cookies(response: Response, access_token: str, refresh_token: str | None = None) -> None:
    """Attach the session cookies; refresh is omitted when only the access token rotates."""
    response.headers.append("set-cookie", encode_session_cookie(ACCESS_COOKIE, access_token, ACCESS_TOKEN_TTL))
    if refresh_token is not None:
        response.headers.append(
            "set-cookie", encode_session_cookie(REFRESH_COOKIE, refresh_token, REFRESH_TOKEN_TTL)
        )


def clear_session_cookies(response: Response) -> None:
    response.headers.append("set-cookie", expire_cookie(ACCESS_COOKIE))
    response.headers.append("set-cookie", expire_cookie(REFRESH_COOKIE))
