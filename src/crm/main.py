"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
lifespan events for database initialization, the automation service, and
the v1 API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.crm.config import get_settings
from src.crm.core.database import close_db, get_session, init_db
from src.crm.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.crm.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.crm.api.v1.router import router as v1_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB, Sentry and automations on startup."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    # An unreachable store must not stop the process from serving /health;
    # readiness reports it and every automation answers with an error body.
    try:
        await init_db()
    except Exception:
        log.warning("database_init_failed", exc_info=True)

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    try:
        from src.crm.automations.repository import AutomationRepository
        from src.crm.automations.service import AutomationService

        repository = AutomationRepository(session_factory=get_session)
        app.state.automation_service = AutomationService(repository, settings)
        log.info(
            "automation_service_initialized",
            parallel_steps=settings.AUTOMATION_PARALLEL_STEPS,
            step_timeout=settings.AUTOMATION_STEP_TIMEOUT_SECONDS,
        )
    except Exception:
        log.warning("automation_service_init_failed", exc_info=True)
        app.state.automation_service = None

    yield

    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="CRM Automations API",
        version="0.1.0",
        description="Lead prioritization and engagement scoring for ad-space sales",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router, prefix="/api/v1")

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
