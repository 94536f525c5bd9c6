"""SQLAlchemy 2.0 ORM layer for jobspine.

Modules
-------
base        JobSpineBase (declarative base) + TimestampMixin
session     Engine factory, JobSpineSession, init_schema
tables      SchedulerJobTable (``scheduler_jobs``)

Tags:
    jobspine, orm, sqlalchemy, declarative
"""

from __future__ import annotations

from jobspine.core.orm.base import JobSpineBase, TimestampMixin
from jobspine.core.orm.session import (
    JobSpineSession,
    create_jobspine_engine,
    init_schema,
    jobspine_session_factory,
)
from jobspine.core.orm.tables import SchedulerJobTable

__all__ = [
    "JobSpineBase",
    "TimestampMixin",
    "JobSpineSession",
    "create_jobspine_engine",
    "init_schema",
    "jobspine_session_factory",
    "SchedulerJobTable",
]
