"""
Test support utilities for jobspine tests.

Helpers that are not fixtures but are shared across test packages:
a recording executor and a polling wait for work done on engine threads.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from jobspine.core.models.jobs import FiringContext

HOURLY = "0 0 * * * ?"
DAILY_NOON = "0 0 12 * * ?"


class RecordingExecutor:
    """Executor that records every FiringContext it receives.

    An optional *action* runs before the context is recorded, so tests can
    block, fail, or rendezvous inside a firing.
    """

    def __init__(self, action: Callable[[FiringContext], None] | None = None) -> None:
        self.contexts: list[FiringContext] = []
        self.action = action
        self._cond = threading.Condition()

    def __call__(self, context: FiringContext) -> None:
        if self.action is not None:
            self.action(context)
        with self._cond:
            self.contexts.append(context)
            self._cond.notify_all()

    def wait_for(self, count: int = 1, timeout: float = 5.0) -> bool:
        """Block until *count* firings were recorded."""
        with self._cond:
            return self._cond.wait_for(lambda: len(self.contexts) >= count, timeout=timeout)


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll *predicate* until it is true or *timeout* expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()
