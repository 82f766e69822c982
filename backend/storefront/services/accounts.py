"""Account lookups across the role-scoped account tables."""

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth.roles import Role, role_for_table
from storefront.models.account import Admin, User

ACCOUNT_MODELS: dict[Role, type[User] | type[Admin]] = {
    Role.USER: User,
    Role.ADMIN: Admin,
}


def normalize_email(email: str) -> str:
    """The form pydantic's ``EmailStr`` stores at registration (domain lowercased)."""
    email = email.strip()
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError:
        return email


async def get_account_by_email(db: AsyncSession, role: Role, email: str) -> User | Admin | None:
    model = ACCOUNT_MODELS[role]
    return (await db.execute(
        select(model).where(model.email == email).limit(1)
    )).scalar_one_or_none()


async def get_account(db: AsyncSession, role: Role, account_id: int) -> User | Admin | None:
    return await db.get(ACCOUNT_MODELS[role], account_id)


async def resolve_refresh_identity(
    db: AsyncSession, account_id: int, email: str, table: str | None = None
) -> tuple[User | Admin, Role] | None:
    """Find the live account behind a refresh token and the role it holds today.

    Ids and emails are only unique per table, so the account is matched on
    (id, email) in the table named by the token's ``acct`` claim and nowhere
    else. Tokens minted without ``acct`` try the least privileged table
    first. A deleted account returns None.
    """
    if table is None:
        candidates = (Role.USER, Role.ADMIN)
    else:
        role = role_for_table(table)
        if role is None:
            return None
        candidates = (role,)

    for role in candidates:
        model = ACCOUNT_MODELS[role]
        account = (await db.execute(
            select(model).where(model.id == account_id, model.email == email).limit(1)
        )).scalar_one_or_none()
        if account is not None:
            return account, role
    return None


def account_claims(account: User | Admin, role: Role) -> dict:
    """Claims for a freshly issued access token."""
    return {
        "id": account.id,
        "email": account.email,
        "role": role.value,
        "name": account.name or "",
    }


def public_account(account: User | Admin, role: Role) -> dict:
    data = {
        "id": account.id,
        "name": account.name or "",
        "email": account.email,
        "role": role.value,
    }
    if role is Role.USER:
        data["phone"] = account.phone or ""
        data["address"] = account.address or ""
    return data
