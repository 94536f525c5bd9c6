"""Reconciliation service - keeps the job store and the engine in step.

Manifesto:
    The store records what *should* be scheduled; the engine is what
    actually fires.  Every create, update, delete, pause, resume and manual
    run goes through this service, which drives both sides to the same
    state.  The two writes are not atomic: the engine is written first and
    the store second, and when the second write fails the divergence is
    logged and left for :meth:`ReconciliationService.reconcile` to repair.

Tags:
    jobspine, scheduling, reconciliation, orchestrator, dual-write

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  RECONCILIATION SERVICE                                                       │
│                                                                               │
│   caller ──► ReconciliationService ──► 1. SchedulingEngine (live state)      │
│                                    └──► 2. JobStore        (desired state)   │
│                                                                               │
│   Operation      Engine                          Store           Status       │
│   ─────────────  ──────────────────────────────  ──────────────  ──────────   │
│   create         register (DO_NOTHING)           insert          RUNNING*     │
│   run now        fire_now (skipped if PAUSED)    -               unchanged    │
│   delete         unregister                      delete          removed      │
│   pause          pause                           status          PAUSED       │
│   resume         reschedule (FIRE_AND_PROCEED)   status          RUNNING      │
│   update         unregister old, register new    overwrite       PAUSED**     │
│                                                                               │
│   *  or the caller-supplied status                                            │
│   ** pause-on-update rule, configurable                                       │
│                                                                               │
│   initialize()  register missing keys (FIRE_AND_PROCEED), skip known ones    │
│   reconcile()   diff store against engine and repair both directions         │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from typing import Any

from jobspine.core.errors import (
    DuplicateJobError,
    InvalidScheduleError,
    JobSpineError,
    NotFoundError,
    NotRegisteredError,
)
from jobspine.core.logging import get_logger
from jobspine.core.models.jobs import (
    JobDefinition,
    JobKey,
    JobStatus,
    MisfirePolicy,
    ReconcileReport,
)
from jobspine.core.protocols import JobStore
from jobspine.core.scheduling.cron import validate_cron
from jobspine.core.scheduling.engine import SchedulingEngine

logger = get_logger(__name__)


class ReconciliationService:
    """Orchestrates job lifecycle across the store and the scheduling engine.

    Example:
        >>> service = ReconciliationService(store, engine)
        >>> service.start()                      # engine start + initialize()
        >>> service.create_job(JobDefinition("ReportJob", "default", "daily report", "0 0 * * * ?"))
        >>> service.pause_job("ReportJob", "default")
        >>> service.resume_job("ReportJob", "default")
        >>> service.stop()
    """

    def __init__(
        self,
        store: JobStore,
        engine: SchedulingEngine,
        *,
        pause_on_update: bool = True,
    ) -> None:
        """Initialize the service.

        Args:
            store: Persistence for job definitions
            engine: Scheduling engine; started and stopped by the owner
            pause_on_update: Leave every updated job PAUSED until resumed
        """
        self.store = store
        self.engine = engine
        self.pause_on_update = pause_on_update

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> ReconcileReport:
        """Start the engine and run startup reconciliation."""
        self.engine.start()
        return self.initialize()

    def stop(self, wait: bool = True) -> None:
        """Shut the engine down, draining in-flight executions when *wait*."""
        self.engine.shutdown(wait=wait)

    def __enter__(self) -> ReconciliationService:
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()

    def initialize(self) -> ReconcileReport:
        """Register every stored definition the engine does not know yet.

        Keys already present in the engine are trusted and skipped.  New
        registrations use FIRE_AND_PROCEED so missed schedules catch up, and
        definitions stored as PAUSED are paused straight after registering.
        A definition whose expression no longer parses is recorded as failed
        and the pass continues.
        """
        report = ReconcileReport()
        for definition in self.store.find_all():
            key = definition.key
            if self.engine.exists(key):
                logger.info("startup_job_already_registered", job_name=key.name, job_group=key.group)
                report.skipped.append(key.id)
                continue

            try:
                self.engine.register_job(
                    key,
                    definition.description,
                    definition.cron_expression,
                    MisfirePolicy.FIRE_AND_PROCEED,
                    exclusive=definition.exclusive,
                )
            except InvalidScheduleError as e:
                logger.error(
                    "startup_job_invalid_schedule",
                    job_name=key.name,
                    job_group=key.group,
                    cron_expression=definition.cron_expression,
                    reason=e.reason,
                )
                report.failed[key.id] = e.reason
                continue

            report.registered.append(key.id)
            if definition.is_paused:
                self.engine.pause(key)
                report.paused.append(key.id)

        logger.info(
            "startup_reconciliation_complete",
            registered=len(report.registered),
            skipped=len(report.skipped),
            paused=len(report.paused),
            failed=len(report.failed),
        )
        return report

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_job(self, definition: JobDefinition) -> JobDefinition:
        """Register and persist a new job.

        Raises:
            InvalidScheduleError: The cron expression does not parse.
            DuplicateJobError: The (job_name, job_group) key already exists.
        """
        key = definition.key
        validate_cron(definition.cron_expression, self.engine.timezone)

        if self.store.find_by_name_and_group(key.name, key.group) is not None:
            logger.warning("create_job_duplicate", job_name=key.name, job_group=key.group)
            raise DuplicateJobError(f"Job already exists: {key}").with_context(
                job_name=key.name, job_group=key.group
            )

        status = definition.status or JobStatus.RUNNING
        self.engine.register_job(
            key,
            definition.description,
            definition.cron_expression,
            MisfirePolicy.DO_NOTHING,
            exclusive=definition.exclusive,
        )
        if status is JobStatus.PAUSED:
            self.engine.pause(key)

        try:
            saved = self.store.save(replace(definition, id=None, status=status))
        except DuplicateJobError:
            # Lost a race with another writer: leave the engine as it was.
            self.engine.unregister(key)
            raise
        except JobSpineError as e:
            self._log_divergence("create", key, e)
            raise

        logger.info(
            "job_created",
            job_id=saved.id,
            job_name=key.name,
            job_group=key.group,
            cron_expression=saved.cron_expression,
            status=status.value,
        )
        return saved

    def list_jobs(self) -> list[JobDefinition]:
        return self.store.find_all()

    def get_job(self, job_name: str, job_group: str) -> JobDefinition | None:
        return self.store.find_by_name_and_group(job_name, job_group)

    def update_job(self, definition: JobDefinition) -> JobDefinition:
        """Overwrite the definition with ``definition.id`` and re-register it.

        Renaming (a new name or group) is allowed.  The resulting status
        follows :meth:`_status_after_update`.

        Raises:
            NotFoundError: No definition has that id.
            InvalidScheduleError: The new cron expression does not parse.
            DuplicateJobError: The new key belongs to another definition.
        """
        existing = self.store.find_by_id(definition.id) if definition.id is not None else None
        if existing is None:
            raise NotFoundError(f"Job definition not found: {definition.id}").with_context(
                job_id=definition.id
            )

        validate_cron(definition.cron_expression, self.engine.timezone)

        old_key, new_key = existing.key, definition.key
        if new_key != old_key:
            clash = self.store.find_by_name_and_group(new_key.name, new_key.group)
            if clash is not None and clash.id != existing.id:
                raise DuplicateJobError(f"Job already exists: {new_key}").with_context(
                    job_name=new_key.name, job_group=new_key.group
                )

        status = self._status_after_update(existing.status)
        exclusive = existing.exclusive if definition.exclusive is None else definition.exclusive
        self.engine.unregister(old_key)
        with self._second_write("update", new_key):
            self.engine.register_job(
                new_key,
                definition.description,
                definition.cron_expression,
                MisfirePolicy.DO_NOTHING,
                exclusive=exclusive,
            )
            if status is JobStatus.PAUSED:
                self.engine.pause(new_key)
            saved = self.store.save(
                replace(
                    existing,
                    job_name=definition.job_name,
                    job_group=definition.job_group,
                    cron_expression=definition.cron_expression,
                    description=definition.description,
                    exclusive=exclusive,
                    status=status,
                )
            )

        logger.info(
            "job_updated",
            job_id=saved.id,
            old_key=old_key.id,
            new_key=new_key.id,
            cron_expression=saved.cron_expression,
            status=status.value,
        )
        return saved

    def delete_job(self, job_name: str, job_group: str) -> None:
        """Remove the job from engine and store.  Unknown keys are a no-op."""
        key = JobKey(job_name, job_group)
        definition = self.store.find_by_name_and_group(job_name, job_group)
        removed = self.engine.unregister(key)
        if definition is not None:
            with self._second_write("delete", key):
                self.store.delete(definition)

        logger.info(
            "job_deleted",
            job_name=job_name,
            job_group=job_group,
            engine_removed=removed,
            store_removed=definition is not None,
        )

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def run_job_now(self, job_name: str, job_group: str) -> bool:
        """Fire the job once, immediately.

        Missing and PAUSED jobs are skipped with a warning, never an error.

        Returns:
            True if a firing was requested
        """
        key = JobKey(job_name, job_group)
        definition = self.store.find_by_name_and_group(job_name, job_group)
        if definition is None:
            logger.warning("run_now_job_not_found", job_name=job_name, job_group=job_group)
            return False
        if definition.is_paused:
            logger.warning("run_now_job_paused", job_name=job_name, job_group=job_group)
            return False

        try:
            self.engine.fire_now(key)
        except NotRegisteredError:
            logger.warning("run_now_job_not_registered", job_name=job_name, job_group=job_group)
            return False

        logger.info("job_run_requested", job_name=job_name, job_group=job_group)
        return True

    def pause_job(self, job_name: str, job_group: str) -> bool:
        """Pause firing and record PAUSED.

        Returns:
            True if the engine job was paused
        """
        key = JobKey(job_name, job_group)
        paused = self.engine.pause(key)
        if not paused:
            logger.warning("pause_job_not_registered", job_name=job_name, job_group=job_group)

        definition = self.store.find_by_name_and_group(job_name, job_group)
        if definition is None:
            logger.warning("pause_job_not_stored", job_name=job_name, job_group=job_group)
            return paused

        if definition.status is not JobStatus.PAUSED:
            with self._second_write("pause", key):
                self.store.save(replace(definition, status=JobStatus.PAUSED))

        logger.info("job_paused", job_name=job_name, job_group=job_group)
        return paused

    def resume_job(self, job_name: str, job_group: str) -> bool:
        """Re-arm the job with its current cron expression and FIRE_AND_PROCEED.

        Aborts with a warning, changing nothing, when the engine has no job
        or trigger for the key.

        Returns:
            True if the job was resumed
        """
        key = JobKey(job_name, job_group)
        trigger = self.engine.get_trigger(key.trigger_key)
        if trigger is None or not self.engine.exists(key):
            logger.warning("resume_job_not_registered", job_name=job_name, job_group=job_group)
            return False

        self.engine.reschedule(key.trigger_key, trigger.cron_expression, MisfirePolicy.FIRE_AND_PROCEED)

        definition = self.store.find_by_name_and_group(job_name, job_group)
        if definition is None:
            logger.warning("resume_job_not_stored", job_name=job_name, job_group=job_group)
        elif definition.status is not JobStatus.RUNNING:
            with self._second_write("resume", key):
                self.store.save(replace(definition, status=JobStatus.RUNNING))

        logger.info(
            "job_resumed",
            job_name=job_name,
            job_group=job_group,
            cron_expression=trigger.cron_expression,
        )
        return True

    # ------------------------------------------------------------------
    # Diff and repair
    # ------------------------------------------------------------------

    def reconcile(self) -> ReconcileReport:
        """Compare stored definitions with the engine and repair the engine.

        * stored but not registered: register (FIRE_AND_PROCEED)
        * cron expression differs: reschedule with the stored expression
        * stored PAUSED, engine running: pause
        * stored RUNNING, engine paused: re-arm (FIRE_AND_PROCEED)
        * registered but not stored: unregister
        """
        report = ReconcileReport()
        desired = {d.key: d for d in self.store.find_all()}

        for key, definition in desired.items():
            try:
                self._reconcile_one(key, definition, report)
            except InvalidScheduleError as e:
                logger.error(
                    "reconcile_invalid_schedule",
                    job_name=key.name,
                    job_group=key.group,
                    cron_expression=definition.cron_expression,
                    reason=e.reason,
                )
                report.failed[key.id] = e.reason

        for key in self.engine.job_keys():
            if key not in desired:
                self.engine.unregister(key)
                report.removed.append(key.id)
                logger.warning("reconcile_orphan_removed", job_name=key.name, job_group=key.group)

        logger.info("reconciliation_complete", **{k: len(v) for k, v in report.to_dict().items()})
        return report

    def _reconcile_one(self, key: JobKey, definition: JobDefinition, report: ReconcileReport) -> None:
        if not self.engine.exists(key):
            self.engine.register_job(
                key,
                definition.description,
                definition.cron_expression,
                MisfirePolicy.FIRE_AND_PROCEED,
                exclusive=definition.exclusive,
            )
            report.registered.append(key.id)
            if definition.is_paused:
                self.engine.pause(key)
                report.paused.append(key.id)
            return

        changed = False
        trigger = self.engine.get_trigger(key.trigger_key)
        if trigger is None or trigger.cron_expression != definition.cron_expression:
            policy = trigger.misfire_policy if trigger else MisfirePolicy.FIRE_AND_PROCEED
            self.engine.reschedule(key.trigger_key, definition.cron_expression, policy)
            report.rescheduled.append(key.id)
            changed = True

        engine_paused = self.engine.is_paused(key)
        if definition.is_paused and not engine_paused:
            self.engine.pause(key)
            report.paused.append(key.id)
            changed = True
        elif not definition.is_paused and engine_paused:
            self.engine.reschedule(key.trigger_key, definition.cron_expression, MisfirePolicy.FIRE_AND_PROCEED)
            report.resumed.append(key.id)
            changed = True

        if not changed:
            report.skipped.append(key.id)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def health(self) -> dict[str, Any]:
        """Engine health plus stored job counts by status."""
        engine_health = self.engine.health()
        try:
            jobs = self.store.count_by_status()
        except JobSpineError as e:
            logger.error("health_store_unavailable", error=str(e))
            jobs = None
        return {
            "healthy": bool(engine_health["healthy"]) and jobs is not None,
            "engine": engine_health,
            "jobs": jobs,
            "pause_on_update": self.pause_on_update,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _status_after_update(self, previous: JobStatus | None) -> JobStatus:
        """Pause-on-update rule.

        When ``pause_on_update`` is on, every successful update ends PAUSED
        and needs an explicit resume.  When off, the prior status is kept.
        """
        if self.pause_on_update:
            return JobStatus.PAUSED
        return previous or JobStatus.RUNNING

    @contextmanager
    def _second_write(self, operation: str, key: JobKey) -> Iterator[None]:
        """Log engine/store divergence when a write after the engine write fails."""
        try:
            yield
        except JobSpineError as e:
            self._log_divergence(operation, key, e)
            raise

    def _log_divergence(self, operation: str, key: JobKey, error: JobSpineError) -> None:
        logger.error(
            "dual_write_divergence",
            operation=operation,
            job_name=key.name,
            job_group=key.group,
            error_type=type(error).__name__,
            error=str(error),
        )
