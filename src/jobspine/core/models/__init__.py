"""Dataclass models for jobspine.

Field names of :class:`JobDefinition` match the ``scheduler_jobs`` columns
so rows convert without a mapping table.

Modules
-------
jobs
    Job definitions, job/trigger keys, status and misfire enums, engine
    triggers, firing context, reconcile reports.
"""

from __future__ import annotations

from jobspine.core.models.jobs import (
    EngineTrigger,
    FiringContext,
    JobDefinition,
    JobKey,
    JobStatus,
    MisfirePolicy,
    ReconcileReport,
    TriggerKey,
)

__all__ = [
    "EngineTrigger",
    "FiringContext",
    "JobDefinition",
    "JobKey",
    "JobStatus",
    "MisfirePolicy",
    "ReconcileReport",
    "TriggerKey",
]
