"""
Prometheus metrics middleware.

Collects HTTP request metrics (counter + histogram) and exposes auth-level
counters for logins, refreshes and access-policy decisions.
"""

import time

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# ── HTTP metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# ── Auth metrics ─────────────────────────────────────────────────────────────

auth_events_total = Counter(
    "auth_events_total",
    "Session lifecycle events",
    ["event", "outcome"],  # event: login|register|refresh|logout|password_reset|password_change
)

legacy_password_logins_total = Counter(
    "legacy_password_logins_total",
    "Successful logins against plaintext (migration-required) password rows",
    ["role"],
)

access_policy_decisions_total = Counter(
    "access_policy_decisions_total",
    "Route access policy outcomes",
    ["route_class", "action"],
)


def _normalize_path(path: str) -> str:
    """Collapse numeric ids to reduce cardinality.

    e.g. /api/users/42 → /api/users/{id}
    """
    parts = path.strip("/").split("/")
    normalized = ["{id}" if part.isdigit() or len(part) > 40 else part for part in parts]
    return "/" + "/".join(normalized)


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        # Skip metrics endpoint itself to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = _normalize_path(request.url.path)

        start = time.time()
        response = await call_next(request)
        duration = time.time() - start

        http_requests_total.labels(
            method=method,
            path=path,
            status_code=response.status_code,
        ).inc()

        http_request_duration_seconds.labels(
            method=method,
            path=path,
        ).observe(duration)

        return response
