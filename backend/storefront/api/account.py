"""Per-user resources, readable by their owner and by admins."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.api.deps import get_db, require_owner
from storefront.api.envelope import send_response
from storefront.auth.context import AuthUser
from storefront.auth.roles import Role
from storefront.services.accounts import get_account, public_account

router = APIRouter(prefix="/api/users", tags=["account"])


@router.get("/{user_id}")
async def get_user_profile(user_id: int,
                           caller: AuthUser = Depends(require_owner("user_id")),
                           db: AsyncSession = Depends(get_db)):
    """Shopper profile; 403 for anyone but the shopper or an admin."""
    user = await get_account(db, Role.USER, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return send_response(True, "OK", {"user": public_account(user, Role.USER)})
