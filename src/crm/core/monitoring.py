"""Prometheus metrics, Sentry integration, and automation run tracking.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- track_automation(): Context manager for automation run metrics
- record_rows_updated(): Counter helper for conditional write-backs
- init_sentry(): Initialize Sentry for the FastAPI app
- get_metrics_response(): Prometheus exposition for the /metrics route
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Automation Metrics ───────────────────────────────────────────────────────

automation_runs_total = Counter(
    "automation_runs_total",
    "Total automation runs",
    ["automation", "status"],
)

automation_duration_seconds = Histogram(
    "automation_duration_seconds",
    "Automation run duration in seconds",
    ["automation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

automation_rows_updated_total = Counter(
    "automation_rows_updated_total",
    "Rows written back to the store by automations",
    ["automation"],
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    Skips the /metrics endpoint itself to avoid self-referential counting.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        endpoint = request.url.path

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


# ── Automation Metrics Helpers ──────────────────────────────────────────────


@asynccontextmanager
async def track_automation(automation: str) -> AsyncGenerator[None, None]:
    """Context manager that tracks one automation run.

    Usage:
        async with track_automation("recalc-waffling"):
            result = await recalculate_waffling(...)

    Records the duration histogram and a success/error run counter.
    Exceptions are re-raised unchanged.
    """
    start_time = time.perf_counter()
    status = "success"

    try:
        yield
    except BaseException:
        status = "error"
        raise
    finally:
        automation_runs_total.labels(automation=automation, status=status).inc()
        automation_duration_seconds.labels(automation=automation).observe(
            time.perf_counter() - start_time
        )


def record_rows_updated(automation: str, count: int) -> None:
    """Increment the write-back counter for an automation."""
    if count > 0:
        automation_rows_updated_total.labels(automation=automation).inc(count)


# ── Sentry Integration ───────────────────────────────────────────────────────


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    # Set sample rate based on environment
    traces_sample_rate = 0.1 if environment == "production" else 1.0

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            StarletteIntegration(),
            FastApiIntegration(),
        ],
    )


# ── Metrics Endpoint ─────────────────────────────────────────────────────────


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
