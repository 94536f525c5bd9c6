"""
Fixtures for scheduling tests.

This module provides:
- A recording executor that lets tests wait for firings
- A started SchedulingEngine (shut down after the test)
- A ReconciliationService wired to the engine and the shared store
"""

from __future__ import annotations

from collections.abc import Generator

import pytest

from jobspine.core.scheduling import ReconciliationService, SchedulingEngine
from tests._support import RecordingExecutor


@pytest.fixture
def recorder() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def engine(recorder) -> Generator[SchedulingEngine, None, None]:
    """A started engine; shut down (draining) after the test."""
    scheduling_engine = SchedulingEngine(recorder, max_workers=4)
    scheduling_engine.start()
    yield scheduling_engine
    scheduling_engine.shutdown(wait=True)


@pytest.fixture
def service(store, engine) -> ReconciliationService:
    return ReconciliationService(store, engine)
