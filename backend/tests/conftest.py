"""Shared test fixtures for backend tests."""

import os

# Settings are read at import time; configure them before importing the app.
os.environ.setdefault("JWT_SECRET", "test-signing-secret-0123456789abcdef0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient, Response  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from starlette.requests import Request  # noqa: E402

import storefront.models  # noqa: E402,F401
from storefront.database import Base  # noqa: E402
from storefront.main import app  # noqa: E402
from storefront.api.deps import get_db, get_mailer  # noqa: E402
from storefront.auth.cookies import parse_cookie_header  # noqa: E402
from storefront.auth.jwt import issue_access_token  # noqa: E402
from storefront.auth.passwords import hash_password  # noqa: E402
from storefront.models.account import Admin, User  # noqa: E402

USER_PASSWORD = "secret123"
ADMIN_PASSWORD = "AdminPass1!"
ADMIN_CODE = "ADM-7731"


class RecordingMailer:
    """Stands in for SMTP delivery and keeps every reset token it was asked to send."""

    def __init__(self):
        self.sent: list[dict] = []

    async def send_password_reset(self, to_email: str, name: str, raw_token: str) -> bool:
        self.sent.append({"to": to_email, "name": name, "token": raw_token})
        return True


def make_request(headers: dict | None = None, path: str = "/api/resource") -> Request:
    """A bare Starlette request carrying only the given headers."""
    raw = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()]
    return Request({
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "path": path,
        "query_string": b"",
        "headers": raw,
    })


def bearer(user_id: int, email: str, role: str, **kwargs) -> dict:
    """Create an Authorization header with a valid access token."""
    token = issue_access_token({"id": user_id, "email": email, "role": role}, **kwargs)
    return {"Authorization": f"Bearer {token}"}


def set_cookies(response: Response) -> dict[str, str]:
    """Cookie name -> raw Set-Cookie directive, for every cookie the response sets."""
    directives = {}
    for header in response.headers.get_list("set-cookie"):
        name = header.split("=", 1)[0]
        directives[name] = header
    return directives


def cookie_values(response: Response) -> dict[str, str]:
    """Cookie name -> value, as a browser would store them (expired ones dropped)."""
    values = {}
    for name, directive in set_cookies(response).items():
        if "Max-Age=0" in directive:
            continue
        values.update(parse_cookie_header(directive.split(";", 1)[0]))
    return values


def cookie_header(**cookies: str) -> dict:
    return {"Cookie": "; ".join(f"{k}={v}" for k, v in cookies.items())}


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """A fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seed_user(db_session: AsyncSession) -> User:
    user = User(
        name="Asha Rao",
        email="asha@example.com",
        password=hash_password(USER_PASSWORD),
        phone="555-0101",
        address="12 Market Street",
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def legacy_user(db_session: AsyncSession) -> User:
    """A row imported from the old store, password stored as plaintext."""
    user = User(
        name="Old Timer",
        email="legacy@example.com",
        password="hunter22",
        phone="555-0102",
        address="1 Old Road",
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def seed_admin(db_session: AsyncSession) -> Admin:
    admin = Admin(
        name="Store Admin",
        email="admin@example.com",
        password=hash_password(ADMIN_PASSWORD),
        admincode=ADMIN_CODE,
    )
    db_session.add(admin)
    await db_session.commit()
    return admin


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest_asyncio.fixture
async def client(session_factory, mailer) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, wired to the per-test database and mailer."""
    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
