"""
Shared pytest fixtures for jobspine tests.

This module provides:
- An in-memory SQLite job store
- A sample job definition

Engine and service fixtures live in ``tests/scheduling/conftest.py``.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure jobspine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from jobspine.core.models.jobs import JobDefinition
from jobspine.core.orm import create_jobspine_engine, init_schema, jobspine_session_factory
from jobspine.core.repositories import SQLAlchemyJobStore
from tests._support import HOURLY


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with the scheduler_jobs table."""
    engine = create_jobspine_engine("sqlite://")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(db_engine) -> SQLAlchemyJobStore:
    return SQLAlchemyJobStore(jobspine_session_factory(db_engine))


@pytest.fixture
def report_job() -> JobDefinition:
    return JobDefinition(
        job_name="ReportJob",
        job_group="default",
        description="daily report",
        cron_expression=HOURLY,
    )
