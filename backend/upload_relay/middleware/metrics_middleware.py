"""
ASGI middleware for tracking HTTP request metrics.
Records request count, duration, and errors.
"""
import re
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from upload_relay.config import settings
from upload_relay.utils.metrics import http_requests_total, http_request_duration_seconds, errors_total

_UUID_RE = re.compile(
    r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}',
    re.IGNORECASE
)
_NUMERIC_SEGMENT_RE = re.compile(r'/\d+(?=/|$)')

# Paths that are not worth a label set of their own
_UNTRACKED_PATHS = {"/metrics", "/api/health"}


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next):
        """Process request and record metrics."""
        if request.url.path in _UNTRACKED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        method = request.method
        path = self._normalize_path(request.url.path)

        try:
            response = await call_next(request)
        except Exception:
            errors_total.labels(error_type="exception").inc()
            raise

        status_code = response.status_code
        http_requests_total.labels(method=method, path=path, status=status_code).inc()
        http_request_duration_seconds.labels(method=method, path=path).observe(
            time.perf_counter() - start_time
        )

        # Track errors (4xx and 5xx)
        if status_code >= 400:
            errors_total.labels(error_type=f"{status_code // 100}xx").inc()

        return response

    @staticmethod
    def _normalize_path(path: str) -> str:
        """
        Normalize path to reduce cardinality.
        Replaces UUIDs and numeric IDs with placeholders and collapses
        locally served files into one label.
        """
        static_prefix = settings.local_public_path.rstrip('/') + '/'
        if path.startswith(static_prefix):
            return static_prefix + '{file}'
        path = _UUID_RE.sub('{id}', path)
        return _NUMERIC_SEGMENT_RE.sub('/{id}', path)
