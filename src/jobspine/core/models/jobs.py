"""Job definition models (``scheduler_jobs``) and engine-side value types.

Manifesto:
    The store and the scheduling engine speak about the same job through a
    single compound key.  Giving that key, the desired status, and the
    misfire policy typed representations keeps the reconciliation service
    free of ad-hoc tuples and string comparisons.

Models for cron job definitions, their engine triggers, and the context
handed to an executor when a trigger fires.

Tags:
    jobspine, models, dataclasses, job-key, misfire, schema-mapping

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum

TRIGGER_SUFFIX = "Trigger"


def _escape_id_part(part: str) -> str:
    return part.replace("\\", "\\\\").replace(".", "\\.").replace("#", "\\#")


class JobStatus(str, Enum):
    """Desired run state of a job definition."""

    RUNNING = "RUNNING"
    PAUSED = "PAUSED"


class MisfirePolicy(str, Enum):
    """What the engine does with a firing whose window was missed.

    ``DO_NOTHING`` skips the missed firing and waits for the next natural
    occurrence.  ``FIRE_AND_PROCEED`` fires once immediately on recovery,
    then continues on the normal cadence.
    """

    DO_NOTHING = "DO_NOTHING"
    FIRE_AND_PROCEED = "FIRE_AND_PROCEED"


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JobKey:
    """Compound identity ``(name, group)`` of a job."""

    name: str
    group: str

    @property
    def id(self) -> str:
        """Engine-side job id: ``"<group>.<name>"`` with ``\\``, ``.`` and ``#`` escaped.

        Distinct keys always map to distinct ids, also when names or groups
        contain dots.
        """
        return f"{_escape_id_part(self.group)}.{_escape_id_part(self.name)}"

    @property
    def trigger_key(self) -> TriggerKey:
        return TriggerKey(self.name + TRIGGER_SUFFIX, self.group)

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class TriggerKey:
    """Identity of the trigger attached to a job: ``(name + "Trigger", group)``."""

    name: str
    group: str

    @property
    def job_key(self) -> JobKey:
        if not self.name.endswith(TRIGGER_SUFFIX):
            raise ValueError(f"Not a job trigger name: {self.name!r}")
        return JobKey(self.name[: -len(TRIGGER_SUFFIX)], self.group)

    def __str__(self) -> str:
        return f"{self.group}.{self.name}"


# ---------------------------------------------------------------------------
# scheduler_jobs
# ---------------------------------------------------------------------------


@dataclass
class JobDefinition:
    """Persisted job definition row (``scheduler_jobs``)."""

    job_name: str = ""
    job_group: str = ""
    description: str = ""
    cron_expression: str = ""
    status: JobStatus | None = None
    # None on an update keeps the stored value
    exclusive: bool | None = False
    id: int | None = None
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    @property
    def key(self) -> JobKey:
        return JobKey(self.job_name, self.job_group)

    @property
    def is_paused(self) -> bool:
        return self.status == JobStatus.PAUSED


# ---------------------------------------------------------------------------
# Engine-side (never persisted)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineTrigger:
    """Trigger registered in the scheduling engine for one job.

    Rebuilt on every register/reschedule, so the misfire policy reflects the
    operation that installed it rather than anything stored.
    """

    key: TriggerKey
    job_key: JobKey
    cron_expression: str
    misfire_policy: MisfirePolicy
    timezone: str = "UTC"


@dataclass(frozen=True)
class FiringContext:
    """What an executor receives when a job fires."""

    job_name: str
    job_group: str
    description: str
    fired_at: datetime.datetime
    manual: bool = False

    @property
    def key(self) -> JobKey:
        return JobKey(self.job_name, self.job_group)


@dataclass
class ReconcileReport:
    """Outcome of a startup or diff-and-repair pass."""

    registered: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    paused: list[str] = field(default_factory=list)
    resumed: list[str] = field(default_factory=list)
    rescheduled: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(
            self.registered or self.paused or self.resumed or self.rescheduled or self.removed
        )

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for serialization."""
        return {
            "registered": list(self.registered),
            "skipped": list(self.skipped),
            "paused": list(self.paused),
            "resumed": list(self.resumed),
            "rescheduled": list(self.rescheduled),
            "removed": list(self.removed),
            "failed": dict(self.failed),
        }
