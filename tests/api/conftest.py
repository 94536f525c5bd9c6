"""Fixtures for API tests: an app with an in-memory store and a recording executor."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from jobspine.api import create_app
from jobspine.core.scheduling import create_scheduler
from jobspine.core.settings import SchedulerSettings
from tests._support import RecordingExecutor


@pytest.fixture
def api_settings() -> SchedulerSettings:
    return SchedulerSettings(database_url="sqlite://", max_workers=4, cors_origins=[])


@pytest.fixture
def api_recorder() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def scheduler(api_settings, api_recorder):
    return create_scheduler(api_settings, executor=api_recorder)


@pytest.fixture
def client(api_settings, scheduler):
    """TestClient with the lifespan running (engine started, reconciled)."""
    app = create_app(settings=api_settings, service=scheduler)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def report_body() -> dict:
    return {
        "jobName": "ReportJob",
        "jobGroup": "default",
        "description": "daily report",
        "cronExpression": "0 0 * * * ?",
    }
