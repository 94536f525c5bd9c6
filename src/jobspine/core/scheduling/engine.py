"""APScheduler-based scheduling engine.

Wraps APScheduler 3.x ``BackgroundScheduler`` with a fixed-size
``ThreadPoolExecutor`` and an in-memory job store, and exposes the
operations the reconciliation service needs: register, unregister,
pause, reschedule (which is also how a paused job resumes), fire-now,
and trigger lookup.

Each job is registered under ``JobKey.id`` (``"<group>.<name>"``, escaped) and has
exactly one cron trigger, tracked here as an
:class:`~jobspine.core.models.jobs.EngineTrigger` under
``JobKey.trigger_key`` so its original expression and misfire policy can
be read back.

Misfire policies map onto APScheduler job options::

    DO_NOTHING        coalesce=True, misfire_grace_time=<threshold>
    FIRE_AND_PROCEED  coalesce=True, misfire_grace_time=None

Firings of the same job may overlap (``max_instances`` equals the pool
size) unless the job was registered ``exclusive``, in which case the
:class:`~jobspine.core.scheduling.lock_manager.LockManager` skips a firing
that finds the job busy.

Example::

    >>> with SchedulingEngine(log_firing, max_workers=4) as engine:
    ...     engine.register_job(
    ...         JobKey("ReportJob", "default"), "daily report",
    ...         "0 0 * * * ?", MisfirePolicy.DO_NOTHING,
    ...     )
    ...     engine.fire_now(JobKey("ReportJob", "default"))
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_MAX_INSTANCES,
    EVENT_JOB_MISSED,
    JobExecutionEvent,
)
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler

from jobspine.core.errors import DuplicateJobError, EngineUnavailableError, NotRegisteredError
from jobspine.core.logging import LogContext, get_logger
from jobspine.core.models.jobs import (
    EngineTrigger,
    FiringContext,
    JobKey,
    MisfirePolicy,
    TriggerKey,
)
from jobspine.core.protocols import Executor
from jobspine.core.scheduling.cron import build_trigger
from jobspine.core.scheduling.lock_manager import LockManager

logger = get_logger(__name__)

_CREATED, _RUNNING, _SHUT_DOWN = "created", "running", "shut_down"


@dataclass(frozen=True)
class _RegisteredJob:
    description: str
    exclusive: bool


@dataclass
class EngineStats:
    """Counters for firings handled by the engine."""

    fired: int = 0
    failed: int = 0
    skipped_busy: int = 0
    misfired: int = 0


class SchedulingEngine:
    """In-process cron engine with a bounded worker pool."""

    name: str = "apscheduler"

    def __init__(
        self,
        executor: Executor,
        *,
        max_workers: int = 10,
        misfire_threshold_seconds: int = 60,
        timezone: str = "UTC",
        lock_manager: LockManager | None = None,
    ) -> None:
        """Initialize the engine.  Nothing fires until :meth:`start`.

        Args:
            executor: Callable invoked with a FiringContext on every firing
            max_workers: Fixed size of the worker pool
            misfire_threshold_seconds: Grace window for DO_NOTHING triggers
            timezone: Timezone cron expressions are evaluated in
            lock_manager: Per-job locks for exclusive jobs
        """
        self._executor = executor
        self.max_workers = max_workers
        self.misfire_threshold_seconds = misfire_threshold_seconds
        self.timezone = timezone
        self.locks = lock_manager or LockManager()

        self._scheduler = BackgroundScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": ThreadPoolExecutor(max_workers)},
            timezone=timezone,
        )
        self._scheduler.add_listener(
            self._on_scheduler_event,
            EVENT_JOB_ERROR | EVENT_JOB_MISSED | EVENT_JOB_MAX_INSTANCES,
        )

        self._guard = threading.RLock()
        self._jobs: dict[JobKey, _RegisteredJob] = {}
        self._triggers: dict[TriggerKey, EngineTrigger] = {}
        self._state = _CREATED
        self._stats = EngineStats()
        self._stats_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start firing.  Starting twice is ignored; restarting after shutdown is refused."""
        with self._guard:
            if self._state == _RUNNING:
                logger.warning("engine_already_running")
                return
            if self._state == _SHUT_DOWN:
                raise EngineUnavailableError("Scheduling engine has been shut down and cannot restart")
            self._scheduler.start()
            self._state = _RUNNING
        logger.info("engine_started", max_workers=self.max_workers, timezone=self.timezone)

    def shutdown(self, wait: bool = True) -> None:
        """Stop firing and release the worker pool.

        With ``wait=True`` this blocks until in-flight executions finish.
        """
        with self._guard:
            if self._state != _RUNNING:
                return
            self._state = _SHUT_DOWN
        logger.info("engine_shutting_down", wait=wait)
        self._scheduler.shutdown(wait=wait)
        self.locks.force_release_all()
        logger.info("engine_stopped")

    @property
    def is_running(self) -> bool:
        return self._state == _RUNNING

    def __enter__(self) -> SchedulingEngine:
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self.shutdown(wait=True)

    def _require_running(self) -> None:
        if self._state == _CREATED:
            raise EngineUnavailableError("Scheduling engine has not been started")
        if self._state == _SHUT_DOWN:
            raise EngineUnavailableError("Scheduling engine has been shut down")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_job(
        self,
        key: JobKey,
        description: str,
        cron_expression: str,
        misfire_policy: MisfirePolicy,
        *,
        exclusive: bool = False,
    ) -> EngineTrigger:
        """Register a job and its cron trigger.

        Raises:
            InvalidScheduleError: The expression does not parse.
            DuplicateJobError: The key is already registered.
            EngineUnavailableError: The engine is not running.
        """
        trigger = build_trigger(cron_expression, self.timezone)
        with self._guard:
            self._require_running()
            if self._scheduler.get_job(key.id) is not None:
                raise DuplicateJobError(f"Job already registered in engine: {key}").with_context(
                    job_name=key.name, job_group=key.group
                )
            self._scheduler.add_job(
                self._fire,
                trigger=trigger,
                id=key.id,
                name=key.id,
                args=(key,),
                max_instances=self.max_workers,
                **self._misfire_options(misfire_policy),
            )
            engine_trigger = EngineTrigger(
                key=key.trigger_key,
                job_key=key,
                cron_expression=cron_expression,
                misfire_policy=misfire_policy,
                timezone=self.timezone,
            )
            self._jobs[key] = _RegisteredJob(description=description or "", exclusive=exclusive)
            self._triggers[key.trigger_key] = engine_trigger

        logger.debug(
            "engine_job_registered",
            job_name=key.name,
            job_group=key.group,
            cron_expression=cron_expression,
            misfire_policy=misfire_policy.value,
        )
        return engine_trigger

    def exists(self, key: JobKey) -> bool:
        with self._guard:
            self._require_running()
            return self._scheduler.get_job(key.id) is not None

    def unregister(self, key: JobKey) -> bool:
        """Remove the job and its trigger.  Absent keys are a no-op.

        Returns:
            True if something was removed
        """
        with self._guard:
            self._require_running()
            removed = False
            if self._scheduler.get_job(key.id) is not None:
                self._scheduler.remove_job(key.id)
                removed = True
            self._jobs.pop(key, None)
            self._triggers.pop(key.trigger_key, None)

        if removed:
            logger.debug("engine_job_unregistered", job_name=key.name, job_group=key.group)
        return removed

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def pause(self, key: JobKey) -> bool:
        """Freeze firing without removing the registration.

        Returns:
            True if paused, False if the key is not registered
        """
        with self._guard:
            self._require_running()
            if self._scheduler.get_job(key.id) is None:
                logger.debug("engine_pause_unknown_job", job_name=key.name, job_group=key.group)
                return False
            self._scheduler.pause_job(key.id)
        return True

    def reschedule(
        self,
        trigger_key: TriggerKey,
        cron_expression: str,
        misfire_policy: MisfirePolicy,
    ) -> EngineTrigger:
        """Swap the trigger under *trigger_key* for a freshly built one.

        The swap is a single job modification, and it re-arms a paused job.

        Raises:
            InvalidScheduleError: The expression does not parse.
            NotRegisteredError: No job/trigger is registered under the key.
            EngineUnavailableError: The engine is not running.
        """
        trigger = build_trigger(cron_expression, self.timezone)
        with self._guard:
            self._require_running()
            current = self._triggers.get(trigger_key)
            if current is None or self._scheduler.get_job(current.job_key.id) is None:
                raise NotRegisteredError(f"Trigger not registered: {trigger_key}").with_context(
                    trigger_name=trigger_key.name, trigger_group=trigger_key.group
                )
            job_key = current.job_key
            self._scheduler.modify_job(
                job_key.id,
                trigger=trigger,
                next_run_time=trigger.get_next_fire_time(None, datetime.now(UTC)),
                **self._misfire_options(misfire_policy),
            )
            replacement = EngineTrigger(
                key=trigger_key,
                job_key=job_key,
                cron_expression=cron_expression,
                misfire_policy=misfire_policy,
                timezone=self.timezone,
            )
            self._triggers[trigger_key] = replacement

        logger.debug(
            "engine_trigger_rescheduled",
            job_name=job_key.name,
            job_group=job_key.group,
            cron_expression=cron_expression,
            misfire_policy=misfire_policy.value,
        )
        return replacement

    def fire_now(self, key: JobKey) -> None:
        """Run the job once, immediately, on the worker pool.  The schedule is untouched.

        Raises:
            NotRegisteredError: The key is not registered.
            EngineUnavailableError: The engine is not running.
        """
        with self._guard:
            self._require_running()
            if key not in self._jobs or self._scheduler.get_job(key.id) is None:
                raise NotRegisteredError(f"Job not registered in engine: {key}").with_context(
                    job_name=key.name, job_group=key.group
                )
            # One-off date job; removed by APScheduler after it runs.
            self._scheduler.add_job(
                self._fire,
                id=f"{key.id}#manual-{uuid4().hex[:12]}",
                name=f"{key.id} (manual)",
                args=(key,),
                kwargs={"manual": True},
                misfire_grace_time=None,
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_trigger(self, trigger_key: TriggerKey) -> EngineTrigger | None:
        with self._guard:
            self._require_running()
            return self._triggers.get(trigger_key)

    def get_trigger_cron_expression(self, trigger_key: TriggerKey) -> str | None:
        trigger = self.get_trigger(trigger_key)
        return trigger.cron_expression if trigger else None

    def is_paused(self, key: JobKey) -> bool:
        """True when the job is registered and has no pending fire time."""
        with self._guard:
            self._require_running()
            job = self._scheduler.get_job(key.id)
            return job is not None and job.next_run_time is None

    def next_fire_time(self, key: JobKey) -> datetime | None:
        with self._guard:
            self._require_running()
            job = self._scheduler.get_job(key.id)
            return job.next_run_time if job is not None else None

    def job_keys(self) -> list[JobKey]:
        """Keys of every registered job, sorted by group then name."""
        with self._guard:
            return sorted(self._jobs, key=lambda k: (k.group, k.name))

    def get_stats(self) -> EngineStats:
        with self._stats_guard:
            return EngineStats(**vars(self._stats))

    def health(self) -> dict[str, Any]:
        """Return engine health status."""
        with self._guard:
            running = self._state == _RUNNING
            jobs = len(self._jobs)
            paused = 0
            if running:
                for key in self._jobs:
                    job = self._scheduler.get_job(key.id)
                    if job is not None and job.next_run_time is None:
                        paused += 1
        stats = self.get_stats()
        return {
            "healthy": running,
            "backend": self.name,
            "state": self._state,
            "max_workers": self.max_workers,
            "jobs": jobs,
            "paused_jobs": paused,
            "active_locks": len(self.locks.list_active_locks()),
            "fired": stats.fired,
            "failed": stats.failed,
            "skipped_busy": stats.skipped_busy,
            "misfired": stats.misfired,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _misfire_options(self, policy: MisfirePolicy) -> dict[str, Any]:
        if policy is MisfirePolicy.FIRE_AND_PROCEED:
            return {"coalesce": True, "misfire_grace_time": None}
        return {"coalesce": True, "misfire_grace_time": self.misfire_threshold_seconds}

    def _count(self, field: str) -> None:
        with self._stats_guard:
            setattr(self._stats, field, getattr(self._stats, field) + 1)

    def _fire(self, key: JobKey, manual: bool = False) -> None:
        """Run on a worker thread for every scheduled or manual firing."""
        with self._guard:
            registered = self._jobs.get(key)
        if registered is None:
            logger.warning("job_fired_after_unregister", job_name=key.name, job_group=key.group)
            return

        if registered.exclusive and not self.locks.acquire(key):
            self._count("skipped_busy")
            logger.info("job_firing_skipped_busy", job_name=key.name, job_group=key.group, manual=manual)
            return

        context = FiringContext(
            job_name=key.name,
            job_group=key.group,
            description=registered.description,
            fired_at=datetime.now(UTC),
            manual=manual,
        )
        self._count("fired")
        try:
            with LogContext(job_name=key.name, job_group=key.group, manual=manual):
                self._executor(context)
        except Exception:
            self._count("failed")
            logger.exception("job_execution_failed", job_name=key.name, job_group=key.group, manual=manual)
        finally:
            if registered.exclusive:
                self.locks.release(key)

    def _on_scheduler_event(self, event: JobExecutionEvent) -> None:
        if event.code == EVENT_JOB_MISSED:
            self._count("misfired")
            logger.warning(
                "job_misfire_skipped",
                job_id=event.job_id,
                scheduled_run_time=str(event.scheduled_run_time),
            )
        elif event.code == EVENT_JOB_MAX_INSTANCES:
            logger.warning("job_max_instances_reached", job_id=event.job_id)
        elif event.code == EVENT_JOB_ERROR:
            logger.error("job_dispatch_failed", job_id=event.job_id, error=str(event.exception))
