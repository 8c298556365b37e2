"""
ASGI middleware for tracking HTTP request metrics.
Records request count, duration, and errors per normalized route.
"""
import re
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from app.utils.metrics import http_requests_total, http_request_duration_seconds, errors_total

UUID_RE = re.compile(r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}', re.IGNORECASE)
NUMERIC_SEGMENT_RE = re.compile(r'/\d+(?=/|$)')


def normalize_path(path: str) -> str:
    """
    Collapse ids in a path so job and asset URLs share one label,
    e.g. /api/generations/<uuid>/cancel -> /api/generations/{id}/cancel.
    """
    path = UUID_RE.sub('{id}', path)
    return NUMERIC_SEGMENT_RE.sub('/{id}', path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next):
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()
        method = request.method
        path = normalize_path(request.url.path)

        try:
            response = await call_next(request)
        except Exception:
            errors_total.labels(error_type="exception").inc()
            raise

        status_code = response.status_code
        http_requests_total.labels(method=method, path=path, status=status_code).inc()
        http_request_duration_seconds.labels(method=method, path=path).observe(time.time() - start_time)

        if status_code >= 400:
            errors_total.labels(error_type=f"{status_code // 100}xx").inc()

        return response
