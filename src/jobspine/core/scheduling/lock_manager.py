"""Per-job execution lock manager.

Manifesto:
    The engine deliberately lets firings of the same job overlap: a cron
    firing and a manual run may execute side by side.  Jobs that must not
    re-enter opt in with ``exclusive=True``, and only those go through this
    lock manager.  Acquire is non-blocking, so a busy job skips the firing
    instead of piling up worker threads.

Tags:
    jobspine, scheduling, locks, concurrency, exclusivity

Doc-Types:
    api-reference


    Lock Flow::

        firing A ── acquire(key) ─► True  ── run ── release(key)
        firing B ── acquire(key) ─► False ── skipped (logged)
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime

from jobspine.core.logging import get_logger
from jobspine.core.models.jobs import JobKey

logger = get_logger(__name__)


class LockManager:
    """In-process, non-blocking locks keyed by :class:`JobKey`.

    Example:
        >>> locks = LockManager()
        >>> if locks.acquire(JobKey("ReportJob", "default")):
        ...     try:
        ...         pass  # run the job
        ...     finally:
        ...         locks.release(JobKey("ReportJob", "default"))
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._held: dict[JobKey, datetime] = {}

    def acquire(self, key: JobKey) -> bool:
        """Acquire the lock for *key*.

        Returns:
            True if acquired, False if another firing holds it
        """
        with self._guard:
            if key in self._held:
                logger.debug("job_lock_busy", job_name=key.name, job_group=key.group)
                return False
            self._held[key] = datetime.now(UTC)
            return True

    def release(self, key: JobKey) -> bool:
        """Release the lock for *key*.

        Returns:
            True if released, False if it was not held
        """
        with self._guard:
            return self._held.pop(key, None) is not None

    def is_locked(self, key: JobKey) -> bool:
        with self._guard:
            return key in self._held

    def list_active_locks(self) -> list[dict]:
        """List held locks, oldest first."""
        with self._guard:
            held = sorted(self._held.items(), key=lambda item: item[1])
        return [
            {"job_name": key.name, "job_group": key.group, "locked_at": locked_at.isoformat()}
            for key, locked_at in held
        ]

    def force_release_all(self) -> int:
        """Drop every held lock.  Only for shutdown and tests.

        Returns:
            Number of locks released
        """
        with self._guard:
            count = len(self._held)
            self._held.clear()
        if count:
            logger.warning("job_locks_force_released", count=count)
        return count
