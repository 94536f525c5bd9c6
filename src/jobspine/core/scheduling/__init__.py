"""Scheduling package for jobspine.

Manifesto:
    A cron job only runs if two things agree: the stored definition says
    it should, and the in-process engine has a live trigger for it.  This
    package owns both halves of that agreement: the APScheduler-backed
    engine, eager cron validation, per-job exclusivity locks, and the
    reconciliation service that keeps engine and store in step.

Guardrails:
    ❌ Registering a job before its cron expression is validated
    ✅ ``build_trigger()`` raises ``InvalidScheduleError`` before any mutation
    ❌ Reaching a global engine from arbitrary code
    ✅ ``create_scheduler(settings)`` returns an owned service; its owner
       starts and stops it
    ❌ Assuming store and engine never diverge
    ✅ ``ReconciliationService.reconcile()`` diff-and-repair pass

Tags:
    jobspine, scheduling, cron, apscheduler, reconciliation, locks

Doc-Types:
    package-overview, module-index
"""

from __future__ import annotations

from jobspine.core.protocols import JobStore
from jobspine.core.settings import SchedulerSettings

# Cron
from .cron import CronFields, build_trigger, next_fire_times, parse_cron, validate_cron

# Engine
from .engine import EngineStats, SchedulingEngine

# Executors
from .executors import ExecutorFn, log_firing, resolve_executor

# Lock Manager
from .lock_manager import LockManager

# Service
from .service import ReconciliationService

__all__ = [
    # Cron
    "CronFields",
    "parse_cron",
    "build_trigger",
    "validate_cron",
    "next_fire_times",
    # Engine
    "SchedulingEngine",
    "EngineStats",
    # Executors
    "ExecutorFn",
    "log_firing",
    "resolve_executor",
    # Lock Manager
    "LockManager",
    # Service
    "ReconciliationService",
    # Factory
    "create_scheduler",
]


def create_scheduler(
    settings: SchedulerSettings | None = None,
    *,
    store: JobStore | None = None,
    executor: ExecutorFn | None = None,
) -> ReconciliationService:
    """Factory function to create a complete, not yet started, scheduler.

    Args:
        settings: Configuration (default: read from the environment)
        store: Job store (default: SQLAlchemy store on ``settings.database_url``)
        executor: Firing callable (default: resolved from ``settings.executor``)

    Returns:
        Configured ReconciliationService

    Example:
        >>> service = create_scheduler(SchedulerSettings(database_url="sqlite://"))
        >>> with service:
        ...     service.list_jobs()
    """
    settings = settings or SchedulerSettings()

    if store is None:
        from jobspine.core.orm import create_jobspine_engine, init_schema, jobspine_session_factory
        from jobspine.core.repositories import SQLAlchemyJobStore

        db_engine = create_jobspine_engine(settings.resolved_database_url())
        init_schema(db_engine)
        store = SQLAlchemyJobStore(jobspine_session_factory(db_engine))

    engine = SchedulingEngine(
        executor or resolve_executor(settings.executor),
        max_workers=settings.max_workers,
        misfire_threshold_seconds=settings.misfire_threshold_seconds,
        timezone=settings.timezone,
    )
    return ReconciliationService(store, engine, pause_on_update=settings.pause_on_update)
