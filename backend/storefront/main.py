import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.config import settings
from storefront.database import engine
from storefront.middleware.logging_config import configure_logging

configure_logging(settings.log_level, settings.log_format)

from storefront.api.auth import router as auth_router  # noqa: E402
from storefront.api.account import router as account_router  # noqa: E402
from storefront.api.admin_users import router as admin_users_router  # noqa: E402
from storefront.api.envelope import send_response  # noqa: E402
from storefront.auth.errors import AuthError  # noqa: E402

logger = logging.getLogger("storefront")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: verify DB connection
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Storefront auth service started (%s)", settings.environment)
    yield
    await engine.dispose()


app = FastAPI(
    title="Storefront Auth",
    description="Session, credential and route-access core for the storefront",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Route access policy (innermost: runs after CORS, logging and metrics) ────
from storefront.middleware.access_policy import AccessPolicyMiddleware  # noqa: E402

app.add_middleware(AccessPolicyMiddleware)

# ── Security headers middleware ──────────────────────────────────────────────
from storefront.middleware.security_headers import SecurityHeadersMiddleware  # noqa: E402

app.add_middleware(SecurityHeadersMiddleware)

# ── Request context middleware (request ID + timing) ─────────────────────────
from storefront.middleware.request_context import RequestContextMiddleware  # noqa: E402

app.add_middleware(RequestContextMiddleware)

# ── Prometheus metrics middleware ────────────────────────────────────────────
from storefront.middleware.metrics import PrometheusMiddleware  # noqa: E402

app.add_middleware(PrometheusMiddleware)

# ── CORS (outermost, so preflights never hit the access policy) ──────────────
origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)


# ── Error envelope ───────────────────────────────────────────────────────────

@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return exc.to_response()


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return send_response(False, str(exc.detail), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
    return send_response(False, "Invalid request body.", errors, status_code=400)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return detailed error info in development mode so 500s are debuggable."""
    tb = traceback.format_exc()
    logger.error(
        "Unhandled %s on %s %s: %s\n%s",
        type(exc).__name__, request.method, request.url.path, exc, tb,
    )
    if settings.environment == "development":
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": f"{type(exc).__name__}: {exc}",
                "data": {"traceback": tb.splitlines()[-5:]},
            },
        )
    return send_response(False, "Internal server error. Try again later.", status_code=500)


# Register API routers
app.include_router(auth_router)
app.include_router(account_router)
app.include_router(admin_users_router)


@app.get("/api/health")
async def health_check():
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        database = {"status": "connected"}
    except Exception as exc:
        logger.warning("Health check: database unavailable: %s", exc)
        database = {"status": "disconnected"}

    return {
        "status": "healthy" if database["status"] == "connected" else "unhealthy",
        "environment": settings.environment,
        "components": {"database": database},
    }


@app.get("/metrics")
async def prometheus_metrics():
    """Expose Prometheus metrics in text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
