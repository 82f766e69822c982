"""
Password-reset tokens.

The raw token (32 random bytes, hex) exists only in the emailed link; the
database keeps its SHA-256 digest. A token is accepted at most once and only
before ``expires_at``. Consumption is a conditional UPDATE on
``used_at IS NULL`` so two concurrent submissions cannot both win.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.account import User
from storefront.models.password_reset import PasswordResetToken

logger = logging.getLogger(__name__)

RESET_TOKEN_TTL = timedelta(hours=1)


def utcnow() -> datetime:
    # Naive UTC, matching the DateTime columns.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    return (await db.execute(
        select(User).where(User.email == email).limit(1)
    )).scalar_one_or_none()


async def issue_reset_token(db: AsyncSession, user: User, *, now: datetime | None = None) -> str:
    """Create (or replace) the user's reset token and return the raw secret."""
    now = now or utcnow()
    raw_token = secrets.token_hex(32)

    row = (await db.execute(
        select(PasswordResetToken).where(PasswordResetToken.user_id == user.id)
    )).scalar_one_or_none()
    if row is None:
        row = PasswordResetToken(user_id=user.id)
        db.add(row)

    row.token_hash = hash_reset_token(raw_token)
    row.expires_at = now + RESET_TOKEN_TTL
    row.used_at = None
    row.created_at = now
    await db.flush()

    logger.info("Password reset token issued for user %s", user.id)
    return raw_token


async def consume_reset_token(
    db: AsyncSession, email: str, raw_token: str, *, now: datetime | None = None
) -> User | None:
    """Mark the token used and return its user, or None if it is unknown, expired or spent."""
    now = now or utcnow()
    found = (await db.execute(
        select(PasswordResetToken, User)
        .join(User, User.id == PasswordResetToken.user_id)
        .where(
            PasswordResetToken.token_hash == hash_reset_token(raw_token),
            User.email == email,
            PasswordResetToken.expires_at > now,
            PasswordResetToken.used_at.is_(None),
        )
        .limit(1)
    )).first()
    if found is None:
        return None

    token, user = found
    result = await db.execute(
        update(PasswordResetToken)
        .where(PasswordResetToken.id == token.id, PasswordResetToken.used_at.is_(None))
        .values(used_at=now)
        .execution_options(synchronize_session="evaluate")
    )
    if result.rowcount != 1:
        return None
    return user
