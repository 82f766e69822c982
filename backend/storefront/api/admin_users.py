"""Admin user management: list, inspect and remove shopper accounts."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import get_admin_user, get_db
from storefront.api.envelope import send_response
from storefront.auth.context import AuthUser
from storefront.auth.passwords import needs_migration
from storefront.auth.roles import Role
from storefront.models.account import User
from storefront.services.accounts import get_account, public_account

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/users", tags=["admin"])


def _user_response(user: User) -> dict:
    resp = public_account(user, Role.USER)
    resp["password_migration_required"] = needs_migration(user.password)
    resp["created_at"] = user.created_at.isoformat() if user.created_at else None
    return resp


@router.get("")
async def list_users(limit: int = Query(50, ge=1, le=200),
                     offset: int = Query(0, ge=0),
                     admin: AuthUser = Depends(get_admin_user),
                     db: AsyncSession = Depends(get_db)):
    """List shopper accounts, newest first."""
    total = (await db.execute(select(func.count()).select_from(User))).scalar_one()
    result = await db.execute(
        select(User).order_by(User.id.desc()).limit(limit).offset(offset)
    )
    return send_response(True, "OK", {
        "users": [_user_response(u) for u in result.scalars()],
        "total": total,
    })


@router.get("/{user_id}")
async def get_user(user_id: int,
                   admin: AuthUser = Depends(get_admin_user),
                   db: AsyncSession = Depends(get_db)):
    user = await get_account(db, Role.USER, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return send_response(True, "OK", {"user": _user_response(user)})


@router.delete("/{user_id}")
async def delete_user(user_id: int,
                      admin: AuthUser = Depends(get_admin_user),
                      db: AsyncSession = Depends(get_db)):
    """Delete a shopper. Their refresh token stops working at the next refresh."""
    user = await get_account(db, Role.USER, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    await db.delete(user)
    logger.info("User %s deleted by %s", user_id, admin.actor)
    return send_response(True, "User deleted")
