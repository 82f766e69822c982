"""
API dependencies: DB session, mailer, authenticated identity.

The identity dependencies are the FastAPI form of the guards in
``storefront.auth.guards``. They raise ``AuthError`` subclasses, which the
application's exception handler renders as the JSON envelope:

    @router.get("/api/users/{user_id}")
    async def get_user(user: AuthUser = Depends(require_owner("user_id"))):
        ...
"""

import logging
from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import async_session
from storefront.auth.context import AuthUser
from storefront.auth.guards import authenticate, check_admin, check_owner
from storefront.services.mailer import Mailer

logger = logging.getLogger(__name__)


# ── Database session ─────────────────────────────────────────────────────────

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session per request, commit on success, rollback on error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_mailer() -> Mailer:
    return Mailer()


# ── Identity ─────────────────────────────────────────────────────────────────

async def get_current_user(request: Request) -> AuthUser:
    """401 unless the request carries a valid access token."""
    return authenticate(request)


async def get_admin_user(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    check_admin(user)
    return user


def require_owner(param: str = "user_id"):
    """
    Dependency factory: the caller must own the resource named by the path
    parameter ``param``. Admins may access any resource.
    """
    async def _check(request: Request, user: AuthUser = Depends(get_current_user)) -> AuthUser:
        check_owner(user, request.path_params.get(param))
        return user
    return _check
