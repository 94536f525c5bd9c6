"""Repositories for jobspine tables.

jobs.py — SQLAlchemyJobStore (``scheduler_jobs``), the default
:class:`~jobspine.core.protocols.JobStore` implementation.
"""

from __future__ import annotations

from jobspine.core.repositories.jobs import SQLAlchemyJobStore

__all__ = ["SQLAlchemyJobStore"]
