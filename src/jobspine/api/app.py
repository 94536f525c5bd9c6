"""
FastAPI application factory.

``create_app()`` wires middleware, routers, error handlers, and the
lifespan that owns the scheduler into a single ``FastAPI`` instance.

Manifesto:
    The app factory is the single composition root — the scheduling
    engine is started when the app starts, reconciled against the store,
    and drained when the app stops.  Nothing else starts or stops it.

Tags:
    jobspine, api, app-factory, composition-root, FastAPI, lifespan

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jobspine import __version__
from jobspine.api.deps import get_settings
from jobspine.api.errors import jobspine_error_handler, unhandled_exception_handler
from jobspine.core.errors import JobSpineError
from jobspine.core.logging import get_logger
from jobspine.core.scheduling import create_scheduler
from jobspine.core.scheduling.service import ReconciliationService
from jobspine.core.settings import SchedulerSettings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — start the scheduler, drain it on shutdown."""
    log = get_logger("jobspine.api")
    settings: SchedulerSettings = app.state.settings

    service: ReconciliationService = app.state.service_override or create_scheduler(settings)
    report = service.start()
    app.state.service = service
    log.info(
        "jobspine_api_started",
        version=app.version,
        registered=len(report.registered),
        skipped=len(report.skipped),
        failed=len(report.failed),
    )
    try:
        yield
    finally:
        app.state.service = None
        service.stop(wait=settings.shutdown_wait)
        log.info("jobspine_api_stopped")


def create_app(
    *,
    settings: SchedulerSettings | None = None,
    service: ReconciliationService | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : SchedulerSettings | None
        Override settings (useful for testing).  When ``None`` the cached
        singleton from :func:`get_settings` is used.
    service : ReconciliationService | None
        Pre-built, not yet started service.  When ``None`` the lifespan
        builds one with :func:`create_scheduler`.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="jobspine",
        version=__version__,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )

    app.state.settings = settings
    app.state.service_override = service
    app.state.service = None

    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(JobSpineError, jobspine_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    from jobspine.api.routers import jobs

    app.include_router(jobs.router, prefix=settings.api_prefix, tags=["schedulers"])

    return app
