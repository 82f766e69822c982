"""Authentication API: login, register, refresh, logout, password recovery, profile."""

import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from storefront.api.deps import get_current_user, get_db, get_mailer
from storefront.api.envelope import send_response
from storefront.auth.context import AuthUser, claims_subject
from storefront.auth.cookies import REFRESH_COOKIE, clear_session_cookies, parse_cookie_header, set_session_cookies
from storefront.auth.guards import optional_auth
from storefront.auth.jwt import issue_access_token, issue_refresh_token, verify_token
from storefront.auth.passwords import hash_password, needs_migration, verify_password
from storefront.auth.roles import Role, ROLE_DASHBOARDS, parse_role
from storefront.middleware.metrics import auth_events_total, legacy_password_logins_total
from storefront.models.account import User
from storefront.services.accounts import (
    account_claims,
    get_account,
    get_account_by_email,
    normalize_email,
    public_account,
    resolve_refresh_identity,
)
from storefront.services.mailer import Mailer
from storefront.services.password_reset import consume_reset_token, get_user_by_email, issue_reset_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

MIN_PASSWORD_LENGTH = 6
FORGOT_PASSWORD_MESSAGE = "If an account exists with that email, a password reset link has been sent."


# ── Request schemas ───────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None
    role: str | None = None
    admincode: str | None = None


class RegisterRequest(BaseModel):
    role: str | None = None
    name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    address: str | None = None
    password: str | None = None


class ForgotPasswordRequest(BaseModel):
    email: str | None = None


class ResetPasswordRequest(BaseModel):
    model_config = {"populate_by_name": True}

    token: str | None = None
    email: str | None = None
    new_password: str | None = Field(default=None, alias="newPassword")


class ChangePasswordRequest(BaseModel):
    model_config = {"populate_by_name": True}

    current_password: str | None = Field(default=None, alias="currentPassword")
    new_password: str | None = Field(default=None, alias="newPassword")


# ── Helpers ───────────────────────────────────────────────────────────────────

def _session_expired(message: str, event: str = "refresh"):
    """401 that also expires both cookies, so a dead session cannot loop."""
    auth_events_total.labels(event=event, outcome="rejected").inc()
    response = send_response(False, message, status_code=401)
    clear_session_cookies(response)
    return response


def _check_new_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )


# ── Session endpoints ─────────────────────────────────────────────────────────

@router.post("/api/login")
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Authenticate a user or admin and start a session (both cookies)."""
    if not body.email or not body.password or not body.role:
        raise HTTPException(status_code=400, detail="Email, password, and role are required.")

    role = parse_role(body.role)
    if role is None:
        raise HTTPException(status_code=400, detail="Invalid role. Must be 'user' or 'admin'.")
    if role is Role.ADMIN and not body.admincode:
        raise HTTPException(status_code=400, detail="Admin Access Code is required.")

    account = await get_account_by_email(db, role, normalize_email(body.email))
    if account is None or not await run_in_threadpool(verify_password, body.password, account.password):
        auth_events_total.labels(event="login", outcome="rejected").inc()
        raise HTTPException(status_code=401, detail="Invalid email or password.")

    if role is Role.ADMIN:
        if not account.admincode:
            raise HTTPException(status_code=403, detail="Admin code not found for this admin.")
        if not hmac.compare_digest(body.admincode.encode("utf-8"), account.admincode.encode("utf-8")):
            auth_events_total.labels(event="login", outcome="rejected").inc()
            raise HTTPException(status_code=403, detail="Invalid Admin Access Code.")

    if needs_migration(account.password):
        # TODO: drop the plaintext path once legacy_password_logins_total stays at zero.
        logger.warning("Plaintext password row used for %s %s; migration required", role.value, account.id)
        legacy_password_logins_total.labels(role=role.value).inc()

    claims = account_claims(account, role)
    access_token = issue_access_token(claims)
    refresh_token = issue_refresh_token(claims)

    logger.info("Login: %s %s", role.value, account.id)
    auth_events_total.labels(event="login", outcome="success").inc()

    response = send_response(True, "Login successful", {
        "user": public_account(account, role),
        "redirect": ROLE_DASHBOARDS[role],
    })
    set_session_cookies(response, access_token, refresh_token)
    return response


@router.post("/api/register", status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a shopper account and sign it in. Admins cannot self-register."""
    if body.role != Role.USER.value:
        raise HTTPException(status_code=400, detail="Invalid role. Only user registration is allowed.")
    if not all([body.name, body.email, body.phone, body.address, body.password]):
        raise HTTPException(status_code=400, detail="All fields are required.")

    if await get_account_by_email(db, Role.USER, body.email) is not None:
        raise HTTPException(status_code=409, detail="User already exists.")

    user = User(
        name=body.name,
        email=body.email,
        password=await run_in_threadpool(hash_password, body.password),
        phone=body.phone,
        address=body.address,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email.
        raise HTTPException(status_code=409, detail="User already exists.")

    claims = account_claims(user, Role.USER)
    access_token = issue_access_token(claims)
    refresh_token = issue_refresh_token(claims)

    logger.info("Registered user %s", user.id)
    auth_events_total.labels(event="register", outcome="success").inc()

    response = send_response(True, "User registered successfully", {
        "user": public_account(user, Role.USER),
        "redirect": ROLE_DASHBOARDS[Role.USER],
    }, status_code=201)
    set_session_cookies(response, access_token, refresh_token)
    return response


@router.post("/api/auth/refresh")
async def refresh(request: Request, db: AsyncSession = Depends(get_db)):
    """Mint a new access token from the refresh cookie, re-reading the role from the database."""
    raw_token = parse_cookie_header(request.headers.get("Cookie")).get(REFRESH_COOKIE)
    if not raw_token:
        return _session_expired("No refresh token provided")

    claims = verify_token(raw_token)
    # A token carrying a role is an access token, not a refresh token.
    if claims is None or "role" in claims:
        return _session_expired("Refresh token expired. Please login again.")

    account_id = claims_subject(claims)
    found = None
    if account_id is not None:
        found = await resolve_refresh_identity(
            db, account_id, claims.get("email", ""), claims.get("acct")
        )
    if found is None:
        logger.info("Refresh rejected: account %s no longer exists", account_id)
        return _session_expired("User not found. Please login again.")

    account, role = found
    access_token = issue_access_token(account_claims(account, role))
    auth_events_total.labels(event="refresh", outcome="success").inc()

    response = send_response(True, "Token refreshed successfully", {
        "user": {"id": account.id, "email": account.email, "name": account.name, "role": role.value},
    })
    # The refresh token itself is not rotated.
    set_session_cookies(response, access_token)
    return response


@router.post("/api/auth/logout")
async def logout():
    """Expire both session cookies. Tokens already issued stay valid until they expire."""
    auth_events_total.labels(event="logout", outcome="success").inc()
    response = send_response(True, "Logged out successfully")
    clear_session_cookies(response)
    return response


# ── Password recovery ─────────────────────────────────────────────────────────

@router.post("/api/auth/forgot-password")
@router.post("/api/forgot-password")
async def forgot_password(body: ForgotPasswordRequest,
                          db: AsyncSession = Depends(get_db),
                          mailer: Mailer = Depends(get_mailer)):
    """Email a reset link. The response never reveals whether the email is registered."""
    if not body.email:
        raise HTTPException(status_code=400, detail="Email is required")

    user = await get_user_by_email(db, normalize_email(body.email))
    if user is not None:
        raw_token = await issue_reset_token(db, user)
        await mailer.send_password_reset(user.email, user.name, raw_token)

    return send_response(True, FORGOT_PASSWORD_MESSAGE)


@router.post("/api/auth/reset-password")
async def reset_password(body: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    """Consume a reset token and set a new password."""
    if not body.token or not body.email or not body.new_password:
        raise HTTPException(status_code=400, detail="All fields are required")
    _check_new_password(body.new_password)

    user = await consume_reset_token(db, normalize_email(body.email), body.token)
    if user is None:
        auth_events_total.labels(event="password_reset", outcome="rejected").inc()
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    user.password = await run_in_threadpool(hash_password, body.new_password)
    logger.info("Password reset completed for user %s", user.id)
    auth_events_total.labels(event="password_reset", outcome="success").inc()
    return send_response(True, "Password reset successfully. You can now login with your new password.")


# ── Current identity ──────────────────────────────────────────────────────────

@router.get("/api/auth/me")
async def me(user: AuthUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Return the caller's account as stored now, not as it was when the token was issued."""
    account = await get_account(db, user.role, user.id)
    if account is None:
        raise HTTPException(status_code=404, detail="User not found")
    return send_response(True, "OK", {"user": public_account(account, user.role)})


@router.get("/api/auth/session")
async def session(request: Request):
    """Describe the caller's session; guests get ``authenticated: false``."""
    async def _describe(req: Request, user: AuthUser | None):
        if user is None:
            return send_response(True, "Guest session", {"authenticated": False, "user": None})
        return send_response(True, "Authenticated session", {"authenticated": True, "user": user.to_dict()})

    return await optional_auth(request, _describe)


@router.put("/api/auth/me/password")
async def change_password(body: ChangePasswordRequest,
                          user: AuthUser = Depends(get_current_user),
                          db: AsyncSession = Depends(get_db)):
    """Change own password (requires current password)."""
    if not body.current_password or not body.new_password:
        raise HTTPException(status_code=400, detail="Current and new password are required")

    account = await get_account(db, user.role, user.id)
    if account is None:
        raise HTTPException(status_code=404, detail="User not found")

    if not await run_in_threadpool(verify_password, body.current_password, account.password):
        auth_events_total.labels(event="password_change", outcome="rejected").inc()
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    _check_new_password(body.new_password)

    account.password = await run_in_threadpool(hash_password, body.new_password)
    logger.info("Password changed by %s", user.actor)
    auth_events_total.labels(event="password_change", outcome="success").inc()
    return send_response(True, "Password updated successfully")
