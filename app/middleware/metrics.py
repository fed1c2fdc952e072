"""Prometheus metrics middleware."""
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware

# Metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
)

http_errors_total = Counter(
    "http_errors_total",
    "Total HTTP errors",
    ["method", "endpoint", "error_type"],
)

task_mutations_total = Counter(
    "task_mutations_total",
    "Task mutations by operation and outcome",
    ["operation", "outcome"],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record request counts and latency per route template."""

    EXCLUDED_PATHS = {"/metrics"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            endpoint = self._endpoint(request)
            http_errors_total.labels(request.method, endpoint, type(exc).__name__).inc()
            raise
        endpoint = self._endpoint(request)
        http_request_duration_seconds.labels(request.method, endpoint).observe(time.perf_counter() - started)
        http_requests_total.labels(request.method, endpoint, str(response.status_code)).inc()
        if response.status_code >= 400:
            http_errors_total.labels(request.method, endpoint, f"http_{response.status_code}").inc()
        return response

    @staticmethod
    def _endpoint(request: Request) -> str:
        route = request.scope.get("route")
        return getattr(route, "path", request.url.path)


def setup_metrics(app: FastAPI) -> None:
    """Setup Prometheus metrics endpoint."""

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
