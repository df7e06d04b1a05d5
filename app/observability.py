import logging
import time

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

REQUEST_COUNT = Counter(
    "http_requests_total",
    "HTTP requests handled",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path"],
)
LOGIN_ATTEMPTS = Counter(
    "auth_login_attempts_total",
    "Login attempts by actor kind and outcome",
    ["kind", "outcome"],
)
LIFECYCLE_TRANSITIONS = Counter(
    "complaint_transitions_total",
    "Complaint status transitions",
    ["old_status", "new_status"],
)


def _route_path(request: Request) -> str:
    # Use the route template so path parameters do not explode label cardinality.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed = time.perf_counter() - start
            path = _route_path(request)
            REQUEST_COUNT.labels(request.method, path, str(status_code)).inc()
            REQUEST_LATENCY.labels(request.method, path).observe(elapsed)
            logger.debug(
                "%s %s -> %s in %.3fs", request.method, path, status_code, elapsed
            )
